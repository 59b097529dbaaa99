"""
Build the survival model matrix from the bundle and split patients by molecular subtype.
"""

import numpy as np
import pandas as pd

from .config import DATA_CONFIG, SUBTYPE_CONFIG, TIME_COL, EVENT_COL
from .data_loader import GENE_COL

_DEAD_LABELS = {'dead', 'deceased', '1', 'true'}


def filter_low_expression(expression, min_mean=DATA_CONFIG['min_mean_expression']):
    """
    Remove genes whose mean expression across samples is below min_mean.

    The gene-name column is dropped before the means are taken and filtered
    together with the expression rows, so names stay aligned.

    Returns:
        (filtered expression without the gene-name column, matching gene names)
    """
    values = expression.drop(columns=[GENE_COL])
    keep = values.mean(axis=1) >= min_mean

    filtered = values.loc[keep].reset_index(drop=True)
    gene_names = expression.loc[keep, GENE_COL].reset_index(drop=True)

    if gene_names.duplicated().any():
        duplicates = sorted(gene_names[gene_names.duplicated()].unique())
        raise ValueError(f"Duplicate gene identifiers after filtering: {duplicates[:10]}")
    return filtered, gene_names


def event_indicator(status):
    """Convert a vital-status column (bool, 0/1, or 'Dead'/'Alive') to booleans."""
    if pd.api.types.is_bool_dtype(status) or pd.api.types.is_numeric_dtype(status):
        return status.fillna(0).astype(bool)
    return status.astype(str).str.strip().str.lower().isin(_DEAD_LABELS)


def build_model_matrix(filtered, gene_names, clinical):
    """
    Transpose the filtered expression to samples x genes and append the outcome columns.

    Args:
        filtered: filtered expression, genes as rows and sample barcodes as columns
        gene_names: gene names aligned with the rows of filtered
        clinical: 'days' and 'status' per sample, in the same order as the sample columns

    Returns:
        DataFrame indexed by sample barcode with one column per gene plus TIME_COL, EVENT_COL
    """
    model_data = filtered.T
    model_data.columns = list(gene_names)
    model_data.index = list(filtered.columns)

    model_data[TIME_COL] = pd.to_numeric(clinical['days']).to_numpy(dtype=float)
    model_data[EVENT_COL] = event_indicator(clinical['status']).to_numpy()
    return model_data


def build_subtype_cohorts(subtypes, config=SUBTYPE_CONFIG):
    """
    Collect the patient barcodes of each subtype cohort.

    Cohorts can overlap: ER+ by IHC, HER2 positive or equivocal by IHC,
    and triple negative by the molecular type label.
    """
    barcodes = subtypes[config['barcode_col']].astype(str)

    er_mask = subtypes[config['er_col']].isin(config['er_positive'])
    her2_mask = subtypes[config['her2_col']].isin(config['her2_positive'])
    tneg_mask = subtypes[config['mol_type_col']] == config['tneg_label']

    return {
        'er': set(barcodes[er_mask]),
        'her2': set(barcodes[her2_mask]),
        'tneg': set(barcodes[tneg_mask]),
    }


def select_cohort(model_data, patients, barcode_length=DATA_CONFIG['barcode_length']):
    """Rows of model_data whose sample barcode prefix belongs to patients."""
    prefixes = model_data.index.str[:barcode_length]
    return model_data.loc[prefixes.isin(list(patients))]


def drop_zero_days(model_data):
    """Remove patients with a survival time of zero days."""
    return model_data.loc[model_data[TIME_COL] != 0]


def prepare_model_data(bundle, data_config=DATA_CONFIG, subtype_config=SUBTYPE_CONFIG, verbose=True):
    """
    Run the full preprocessing on a loaded bundle.

    Returns:
        (model matrix of all samples, dict of subtype name -> patient barcode set)
    """
    expression = bundle['expression']
    filtered, gene_names = filter_low_expression(expression, data_config['min_mean_expression'])
    model_data = build_model_matrix(filtered, gene_names, bundle['clinical'])

    if data_config.get('drop_zero_days'):
        model_data = drop_zero_days(model_data)

    cohorts = build_subtype_cohorts(bundle['subtypes'], subtype_config)

    if verbose:
        n_removed = len(expression) - len(gene_names)
        print(f"Removed {n_removed} of {len(expression)} genes with mean expression "
              f"< {data_config['min_mean_expression']}")
        print(f"Model matrix: {model_data.shape[0]} samples x {len(gene_names)} genes, "
              f"events: {int(model_data[EVENT_COL].sum())}/{len(model_data)}")
        for name, patients in cohorts.items():
            n_samples = len(select_cohort(model_data, patients, data_config['barcode_length']))
            print(f"  {name:5} cohort: {n_samples} samples")

    return model_data, cohorts


def sparse_gene_columns(predictors, fraction=DATA_CONFIG['sparse_fraction']):
    """Gene columns where more than the given fraction of values are exactly zero."""
    genes = predictors.drop(columns=[TIME_COL, EVENT_COL])
    zero_share = (genes == 0).sum(axis=0) > fraction * len(genes)
    return list(genes.columns[np.asarray(zero_share)])
