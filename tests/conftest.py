import pandas as pd
import pytest

from drugrepo_survival.config import get_config
from drugrepo_survival.data_loader import make_synthetic_bundle


@pytest.fixture
def small_bundle():
    """20 genes x 50 patients; GENE1-GENE5 have a mean expression below 5."""
    bundle = make_synthetic_bundle(n_genes=20, n_patients=50, n_low=5, n_drugs=4, seed=7)
    bundle['signatures'] = [
        ['GENE10', 'gene11', 'GENE12'],
        [],
        ['GENE2', 'GENE3'],            # only low-expression genes, filtered away
        ['GENE14', 'GENE15'],
    ]
    bundle['drug_ids'] = [101, 102, 103, 104]
    return bundle


@pytest.fixture
def subtype_table():
    return pd.DataFrame({
        'bcr_patient_barcode': ['TCGA-A1-0001', 'TCGA-A1-0002', 'TCGA-A1-0003',
                                'TCGA-A1-0004', 'TCGA-A1-0005'],
        'er_status_by_ihc': ['Positive', 'Positive', 'Negative', 'Negative', 'Indeterminate'],
        'her2_status_by_ihc': ['Positive', 'Negative', 'Equivocal', 'Negative', 'Negative'],
        'mol_type': ['Other', 'Other', 'Other', 'TripleNegative', 'Other'],
    })


@pytest.fixture
def cox_config(tmp_path):
    return get_config({
        'model': {'method': 'cox'},
        'output': {'results_dir': str(tmp_path / 'results'), 'save_plots': False, 'verbose': False},
    })


@pytest.fixture
def rsf_config(tmp_path):
    return get_config({
        'model': {'method': 'rsf', 'n_estimators': 25, 'min_samples_leaf': 5},
        'cv': {'n_folds': 5},
        'output': {'results_dir': str(tmp_path / 'results'), 'save_plots': False, 'verbose': False},
    })
