"""
Survival models on drug gene signatures.

For one drug the expression of its signature genes is used to predict patient survival
with a Cox proportional hazards model or a random survival forest. Performance is the
concordance index over k-fold cross-validation.
"""

import re
from dataclasses import dataclass

import numpy as np
from sklearn.model_selection import KFold
from sklearn.preprocessing import StandardScaler

# Survival analysis libraries
from sksurv.ensemble import RandomSurvivalForest
from sksurv.linear_model import CoxPHSurvivalAnalysis
from sksurv.metrics import concordance_index_censored
from sksurv.util import Surv

from .config import CV_CONFIG, DATA_CONFIG, MODEL_CONFIG, TIME_COL, EVENT_COL
from .preprocessing import sparse_gene_columns

FIT_ERRORS = (ValueError, ArithmeticError, np.linalg.LinAlgError)


@dataclass(frozen=True)
class DrugResult:
    """Cross-validated performance of one drug signature in one cohort."""
    drug: object
    test_cindex: float
    train_cindex: float
    test_sd: float
    train_sd: float
    gene_count: int


@dataclass(frozen=True)
class DrugFailure:
    """A drug whose model could not be fitted; it contributes no result row."""
    drug: object
    reason: str


def match_signature_genes(gene_list, columns):
    """
    Columns whose name contains a signature gene as a whole token, ignoring case.

    'ABC' matches 'ABC' and 'abc' but not 'ABCD' or 'XABC'. The outcome columns
    never match. Matches are returned in column order.
    """
    genes = [re.escape(str(gene)) for gene in gene_list if isinstance(gene, str) and gene.strip()]
    if not genes:
        return []

    pattern = re.compile(r"\b(?:" + "|".join(genes) + r")\b", re.IGNORECASE)
    return [col for col in columns
            if col not in (TIME_COL, EVENT_COL) and pattern.search(str(col))]


def build_predictors(model_data, gene_list, drop_sparse=False,
                     sparse_fraction=DATA_CONFIG['sparse_fraction']):
    """
    Predictor matrix for a drug: matched gene columns followed by the time and event columns.

    A signature with no match yields a matrix holding only the outcome columns.
    """
    genes = match_signature_genes(gene_list, model_data.columns)
    predictors = model_data[genes + [TIME_COL, EVENT_COL]]

    if drop_sparse:
        sparse = sparse_gene_columns(predictors, sparse_fraction)
        predictors = predictors.drop(columns=sparse)
    return predictors


def drug_rng(position, seed_offset=CV_CONFIG['seed_offset']):
    """Random generator for the drug at 1-based position in the signature list."""
    return np.random.default_rng(position + seed_offset)


def make_folds(n_samples, n_folds, seed):
    """Shuffled k-fold (train, test) index pairs."""
    kf = KFold(n_splits=n_folds, shuffle=True, random_state=seed)
    return list(kf.split(np.arange(n_samples)))


def fold_concordance(y, risk_scores):
    """
    Harrell's concordance of risk scores; NaN when the fold has no comparable pairs
    (e.g. every patient censored).
    """
    if not np.isfinite(risk_scores).all():
        raise ValueError("non-finite risk scores predicted")
    if not y[EVENT_COL].any():
        return np.nan
    try:
        return concordance_index_censored(y[EVENT_COL], y[TIME_COL], risk_scores)[0]
    except (ValueError, ZeroDivisionError):
        # raised by scikit-survival when no pair of samples is comparable
        return np.nan


def train_cox_model(X_train, y_train, alpha=MODEL_CONFIG['cox_alpha'], ties=MODEL_CONFIG['cox_ties']):
    """
    Train Cox Proportional Hazards model
    """
    cox_model = CoxPHSurvivalAnalysis(alpha=alpha, ties=ties)
    cox_model.fit(X_train, y_train)
    return cox_model


def train_rsf_model(X_train, y_train, n_estimators=MODEL_CONFIG['n_estimators'],
                    min_samples_leaf=MODEL_CONFIG['min_samples_leaf'],
                    max_features=MODEL_CONFIG['max_features'], random_state=None):
    """
    Train Random Survival Forest model with out-of-bag concordance
    """
    rsf_model = RandomSurvivalForest(
        n_estimators=n_estimators,
        min_samples_leaf=min_samples_leaf,
        max_features=max_features,
        oob_score=True,
        random_state=random_state
    )
    rsf_model.fit(X_train, y_train)
    return rsf_model


def _mean_sd(values):
    values = np.asarray(values, dtype=float)
    finite = values[~np.isnan(values)]
    mean = finite.mean() if len(finite) else np.nan
    sd = finite.std(ddof=1) if len(finite) > 1 else np.nan
    return float(mean), float(sd)


def cross_validate(predictors, n_folds, rng, model_config=MODEL_CONFIG):
    """
    Fit and score the survival model on each of n_folds folds.

    Train concordance is the out-of-bag concordance for the random survival forest
    and the concordance of the fitted risk scores for Cox. Test concordance is always
    computed from the predicted risk on the held-out fold.

    Returns:
        Dict with train_index, sd_train, test_index, sd_test
    """
    X = predictors.drop(columns=[TIME_COL, EVENT_COL]).to_numpy(dtype=float)
    if not np.isfinite(X).all():
        raise ValueError("non-finite expression values in predictor matrix")
    y = Surv.from_dataframe(EVENT_COL, TIME_COL, predictors)

    method = model_config['method']
    folds = make_folds(len(predictors), n_folds, int(rng.integers(2**31 - 1)))
    model_seeds = rng.integers(2**31 - 1, size=len(folds))

    train_scores = []
    test_scores = []
    for (train_idx, test_idx), model_seed in zip(folds, model_seeds):
        scaler = StandardScaler()
        X_train = scaler.fit_transform(X[train_idx])
        X_test = scaler.transform(X[test_idx])
        y_train, y_test = y[train_idx], y[test_idx]

        if method == 'rsf':
            model = train_rsf_model(
                X_train, y_train,
                n_estimators=model_config['n_estimators'],
                min_samples_leaf=model_config['min_samples_leaf'],
                max_features=model_config['max_features'],
                random_state=int(model_seed)
            )
            train_scores.append(model.oob_score_)
        elif method == 'cox':
            model = train_cox_model(X_train, y_train, model_config['cox_alpha'], model_config['cox_ties'])
            train_scores.append(fold_concordance(y_train, model.predict(X_train)))
        else:
            raise ValueError(f"Unknown method '{method}'")

        test_scores.append(fold_concordance(y_test, model.predict(X_test)))

    mean_train, sd_train = _mean_sd(train_scores)
    mean_test, sd_test = _mean_sd(test_scores)
    return {'train_index': mean_train, 'sd_train': sd_train,
            'test_index': mean_test, 'sd_test': sd_test}


def evaluate_drug(model_data, drug, gene_list, position, n_folds,
                  model_config=MODEL_CONFIG, cv_config=CV_CONFIG, data_config=DATA_CONFIG):
    """
    Cross-validated performance of one drug signature on one cohort's model matrix.

    The generator is reseeded from the drug's position, so repeated runs on the same
    data give the same folds and forests.

    Returns:
        DrugResult, or DrugFailure when fitting raised a numerical error
    """
    rng = drug_rng(position, cv_config['seed_offset'])
    predictors = build_predictors(
        model_data, gene_list,
        drop_sparse=data_config.get('drop_sparse_genes', False),
        sparse_fraction=data_config.get('sparse_fraction', DATA_CONFIG['sparse_fraction'])
    )

    try:
        scores = cross_validate(predictors, n_folds, rng, model_config)
    except FIT_ERRORS as e:
        return DrugFailure(drug=drug, reason=f"{type(e).__name__}: {e}")

    return DrugResult(
        drug=drug,
        test_cindex=scores['test_index'],
        train_cindex=scores['train_index'],
        test_sd=scores['sd_test'],
        train_sd=scores['sd_train'],
        gene_count=predictors.shape[1] - 2
    )
