"""
Configuration for the drug gene-signature survival pipeline.
Modify these settings to customize a run, or override them from the command line.
"""

import copy

# ============================================================================
# DATA CONFIGURATION
# ============================================================================

DATA_CONFIG = {
    'base_path': './generateddata/',
    'bundle_file': 'drugrepoData.pkl',
    'min_mean_expression': 5.0,     # genes with a lower mean across samples are dropped
    'barcode_length': 12,           # patient barcode prefix of a sample barcode
    'drop_zero_days': False,        # remove patients with a survival time of 0 days
    'drop_sparse_genes': False,     # remove signature genes that are mostly zeros
    'sparse_fraction': 0.9,         # fraction of zeros above which a gene is sparse
}

# Columns appended to the sample-major model matrix
TIME_COL = 'days'
EVENT_COL = 'status'

# ============================================================================
# SUBTYPE CONFIGURATION
# ============================================================================

SUBTYPES = ['er', 'her2', 'tneg']

SUBTYPE_CONFIG = {
    'barcode_col': 'bcr_patient_barcode',
    'er_col': 'er_status_by_ihc',
    'her2_col': 'her2_status_by_ihc',
    'mol_type_col': 'mol_type',
    'er_positive': ['Positive'],
    # equivocal HER2 IHC calls are grouped with the positives
    'her2_positive': ['Positive', 'Equivocal'],
    'tneg_label': 'TripleNegative',
}

# ============================================================================
# MODEL CONFIGURATION
# ============================================================================

MODEL_CONFIG = {
    'method': 'rsf',                # 'rsf' (random survival forest) or 'cox'
    'n_estimators': 100,            # trees per random survival forest
    'min_samples_leaf': 15,
    'max_features': 'sqrt',
    'cox_alpha': 0.0,               # no penalty
    'cox_ties': 'breslow',
}

METHODS = ['rsf', 'cox']

# ============================================================================
# CROSS-VALIDATION CONFIGURATION
# ============================================================================

CV_CONFIG = {
    'n_folds': 10,
    # Per-subtype fold counts, e.g. {'her2': 5, 'tneg': 5} for the smaller cohorts.
    # Empty: every cohort uses n_folds.
    'subtype_folds': {},
    'seed_offset': 523,             # drug at 1-based position x is seeded with x + offset
}

# ============================================================================
# OUTPUT CONFIGURATION
# ============================================================================

OUTPUT_CONFIG = {
    'results_dir': './generateddata/cox_rsf/subtype/',
    'file_pattern': 'cox_drug_results_subtype_{subtype}_{method}.txt',
    'sep': ' ',
    'save_plots': True,
    'top_n': 20,                    # drugs shown in summaries and ranking plots
    'verbose': True,
}

# ============================================================================
# QUICK CONFIGURATIONS FOR DIFFERENT SCENARIOS
# ============================================================================

# Fast smoke-test configuration (small forests, few folds)
QUICK_TEST_CONFIG = {
    'model': {
        'n_estimators': 10,
        'min_samples_leaf': 5,
    },
    'cv': {
        'n_folds': 3,
    },
    'output': {
        'save_plots': False,
    },
}


def default_config():
    """Return a fresh, nested copy of every settings dictionary."""
    return {
        'data': copy.deepcopy(DATA_CONFIG),
        'subtype': copy.deepcopy(SUBTYPE_CONFIG),
        'model': copy.deepcopy(MODEL_CONFIG),
        'cv': copy.deepcopy(CV_CONFIG),
        'output': copy.deepcopy(OUTPUT_CONFIG),
    }


def get_config(overrides=None):
    """
    Build a run configuration.

    Args:
        overrides: nested dict keyed like default_config(), e.g.
                   {'model': {'method': 'cox'}, 'cv': {'n_folds': 5}}

    Returns:
        Configuration dict; the module-level dicts are left untouched
    """
    config = default_config()
    for section, values in (overrides or {}).items():
        if section not in config:
            raise KeyError(f"Unknown configuration section: {section}")
        config[section].update(copy.deepcopy(values))

    method = config['model']['method']
    if method not in METHODS:
        raise ValueError(f"Unknown method '{method}', expected one of {METHODS}")
    if config['cv']['n_folds'] < 2 or any(k < 2 for k in config['cv']['subtype_folds'].values()):
        raise ValueError("Cross-validation needs at least 2 folds")
    if config['model']['n_estimators'] < 1:
        raise ValueError("A random survival forest needs at least 1 tree")
    return config
