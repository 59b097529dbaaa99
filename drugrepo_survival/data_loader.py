"""
Data loader for the drug repurposing bundle.

The bundle is a single pickled mapping produced by the upstream preprocessing step.
It holds five datasets:
- expression: mRNA expression, one row per gene, a 'gene_name' column plus one column per sample barcode
- clinical:   survival time ('days') and vital status ('status') per sample, in expression column order
- signatures: list of gene-symbol lists, one per drug
- drug_ids:   catalog index of each drug (HMS LINCS), parallel to signatures
- subtypes:   molecular subtype annotation per patient barcode
"""

import pickle
from pathlib import Path

import numpy as np
import pandas as pd

from .config import SUBTYPE_CONFIG

GENE_COL = 'gene_name'
BUNDLE_KEYS = ['expression', 'clinical', 'signatures', 'drug_ids', 'subtypes']
TABLE_KEYS = ['expression', 'clinical', 'subtypes']
LIST_KEYS = ['signatures', 'drug_ids']


class BundleError(ValueError):
    """Raised when the input bundle is missing a dataset or its datasets disagree."""


def load_bundle(file_path):
    """
    Load and validate the persisted bundle.

    Args:
        file_path: path to the pickled bundle

    Returns:
        Dict with the five datasets listed in BUNDLE_KEYS
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"Input bundle not found: {file_path}")

    try:
        bundle = pd.read_pickle(file_path)
    except (pickle.UnpicklingError, EOFError) as e:
        raise BundleError(f"Could not read bundle {file_path}: {e}") from e
    validate_bundle(bundle)

    bundle = dict(bundle)
    bundle['clinical'] = bundle['clinical'].reset_index(drop=True)
    bundle['signatures'] = [list(genes) for genes in bundle['signatures']]
    bundle['drug_ids'] = list(bundle['drug_ids'])
    return bundle


def validate_bundle(bundle):
    """Check that every dataset is present and that the datasets line up."""
    if not isinstance(bundle, dict):
        raise BundleError(f"Bundle must be a mapping of datasets, got {type(bundle).__name__}")

    for key in BUNDLE_KEYS:
        if key not in bundle:
            raise BundleError(f"Bundle is missing the '{key}' dataset")

    for key in TABLE_KEYS:
        if not isinstance(bundle[key], pd.DataFrame):
            raise BundleError(
                f"'{key}' dataset must be a table, got {type(bundle[key]).__name__}"
            )
    for key in LIST_KEYS:
        if isinstance(bundle[key], (str, bytes, dict)) or not hasattr(bundle[key], '__len__'):
            raise BundleError(
                f"'{key}' dataset must be a list, got {type(bundle[key]).__name__}"
            )

    expression = bundle['expression']
    if GENE_COL not in expression.columns:
        raise BundleError(f"Expression dataset has no '{GENE_COL}' column")

    clinical = bundle['clinical']
    for col in ('days', 'status'):
        if col not in clinical.columns:
            raise BundleError(f"Clinical dataset has no '{col}' column")

    days = pd.to_numeric(clinical['days'], errors='coerce')
    if days.isna().any() or (days < 0).any():
        raise BundleError("Clinical dataset 'days' must be non-negative numbers")
    if clinical['status'].isna().any():
        raise BundleError("Clinical dataset has missing 'status' values")

    n_samples = expression.shape[1] - 1
    if len(clinical) != n_samples:
        raise BundleError(
            f"Clinical dataset has {len(clinical)} rows but expression has {n_samples} samples"
        )

    if len(bundle['signatures']) != len(bundle['drug_ids']):
        raise BundleError(
            f"{len(bundle['signatures'])} drug signatures but {len(bundle['drug_ids'])} drug ids"
        )

    subtype_cols = [SUBTYPE_CONFIG['barcode_col'], SUBTYPE_CONFIG['er_col'],
                    SUBTYPE_CONFIG['her2_col'], SUBTYPE_CONFIG['mol_type_col']]
    missing = [col for col in subtype_cols if col not in bundle['subtypes'].columns]
    if missing:
        raise BundleError(f"Subtype dataset is missing columns: {missing}")


def save_bundle(bundle, file_path):
    """Validate and pickle a bundle; creates the parent directory if needed."""
    validate_bundle(bundle)
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    pd.to_pickle(bundle, file_path)
    return file_path


def make_synthetic_bundle(n_genes=200, n_patients=300, n_low=40, n_drugs=20, seed=42):
    """
    Create a synthetic bundle mimicking the TCGA BRCA structure.

    The first n_low genes have a mean expression well below 5, the rest well above.
    Survival times depend on the first few expressed genes so that signatures
    containing them carry some signal.
    """
    rng = np.random.default_rng(seed)

    gene_names = [f"GENE{i + 1}" for i in range(n_genes)]
    sample_ids = [f"TCGA-{rng.choice(['A1', 'A2', 'AR', 'BH', 'E2'])}-{i:04d}-01A-11R-A115-07"
                  for i in range(n_patients)]

    values = np.empty((n_genes, n_patients))
    values[:n_low] = rng.uniform(0.0, 2.0, size=(n_low, n_patients))
    values[n_low:] = rng.normal(10.0, 2.0, size=(n_genes - n_low, n_patients)).clip(5.5, None)
    expression = pd.DataFrame(values, columns=sample_ids)
    expression.insert(0, GENE_COL, gene_names)

    # Weibull survival times, worse with higher expression of the first signal genes
    signal = values[n_low:n_low + 5]
    risk_score = ((signal - signal.mean(axis=1, keepdims=True)) / signal.std(axis=1, keepdims=True)).sum(axis=0) * 0.3
    survival_times = rng.weibull(1.2, n_patients) * np.exp(-risk_score) * 1500
    censoring_times = rng.exponential(4000, n_patients)
    clinical = pd.DataFrame({
        'days': np.round(np.minimum(survival_times, censoring_times)),
        'status': survival_times <= censoring_times,
    })

    er = rng.choice(['Positive', 'Negative'], n_patients, p=[0.75, 0.25])
    her2 = rng.choice(['Positive', 'Negative', 'Equivocal'], n_patients, p=[0.15, 0.7, 0.15])
    mol_type = np.where((er == 'Negative') & (her2 == 'Negative'), 'TripleNegative', 'Other')
    subtypes = pd.DataFrame({
        SUBTYPE_CONFIG['barcode_col']: [sample[:12] for sample in sample_ids],
        SUBTYPE_CONFIG['er_col']: er,
        SUBTYPE_CONFIG['her2_col']: her2,
        SUBTYPE_CONFIG['mol_type_col']: mol_type,
    })

    signatures = []
    for _ in range(n_drugs):
        size = int(rng.integers(2, 9))
        signatures.append(list(rng.choice(gene_names, size=size, replace=False)))
    drug_ids = sorted(int(i) for i in rng.choice(np.arange(10001, 10400), n_drugs, replace=False))

    return {
        'expression': expression,
        'clinical': clinical,
        'signatures': signatures,
        'drug_ids': drug_ids,
        'subtypes': subtypes,
    }
