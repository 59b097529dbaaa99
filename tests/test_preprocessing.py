import numpy as np
import pandas as pd
import pytest

from drugrepo_survival.config import TIME_COL, EVENT_COL
from drugrepo_survival.data_loader import GENE_COL
from drugrepo_survival.preprocessing import (
    build_model_matrix,
    build_subtype_cohorts,
    drop_zero_days,
    event_indicator,
    filter_low_expression,
    prepare_model_data,
    select_cohort,
    sparse_gene_columns,
)


def test_filter_low_expression_removes_genes_below_threshold(small_bundle):
    expression = small_bundle['expression']
    means = expression.drop(columns=[GENE_COL]).mean(axis=1)

    filtered, gene_names = filter_low_expression(expression, 5.0)

    assert len(filtered) == 15
    assert len(expression) - len(filtered) == int((means < 5.0).sum())
    assert (filtered.mean(axis=1) >= 5.0).all()
    assert list(gene_names) == [f"GENE{i}" for i in range(6, 21)]


def test_filter_keeps_names_aligned_with_rows():
    expression = pd.DataFrame({
        GENE_COL: ['A', 'B', 'C', 'D'],
        's1': [10.0, 1.0, 7.0, 2.0],
        's2': [12.0, 2.0, 9.0, 3.0],
    })
    filtered, gene_names = filter_low_expression(expression, 5.0)

    assert list(gene_names) == ['A', 'C']
    assert filtered['s1'].tolist() == [10.0, 7.0]


def test_filter_rejects_duplicate_gene_names():
    expression = pd.DataFrame({GENE_COL: ['A', 'A'], 's1': [10.0, 11.0]})
    with pytest.raises(ValueError, match='Duplicate'):
        filter_low_expression(expression, 5.0)


def test_model_matrix_is_sample_major(small_bundle):
    filtered, gene_names = filter_low_expression(small_bundle['expression'], 5.0)
    model_data = build_model_matrix(filtered, gene_names, small_bundle['clinical'])

    assert model_data.shape == (50, 15 + 2)
    assert list(model_data.columns[:-2]) == list(gene_names)
    assert list(model_data.columns[-2:]) == [TIME_COL, EVENT_COL]
    assert list(model_data.index) == list(filtered.columns)
    assert model_data.loc[filtered.columns[3], 'GENE6'] == filtered.iloc[0, 3]
    np.testing.assert_array_equal(model_data[TIME_COL].to_numpy(), small_bundle['clinical']['days'].to_numpy())
    assert model_data[EVENT_COL].dtype == bool


def test_event_indicator_accepts_labels():
    status = pd.Series(['Dead', 'Alive', 'dead', 'Alive'])
    assert event_indicator(status).tolist() == [True, False, True, False]
    assert event_indicator(pd.Series([1, 0])).tolist() == [True, False]


def test_subtype_cohorts_follow_ihc_and_mol_type(subtype_table):
    cohorts = build_subtype_cohorts(subtype_table)

    assert cohorts['er'] == {'TCGA-A1-0001', 'TCGA-A1-0002'}
    assert cohorts['her2'] == {'TCGA-A1-0001', 'TCGA-A1-0003'}
    assert cohorts['tneg'] == {'TCGA-A1-0004'}
    # cohorts may overlap
    assert 'TCGA-A1-0001' in cohorts['er'] & cohorts['her2']
    # a patient matching no predicate is in no cohort
    assert not any('TCGA-A1-0005' in patients for patients in cohorts.values())


def test_select_cohort_matches_barcode_prefix():
    model_data = pd.DataFrame(
        {'GENE1': [1.0, 2.0, 3.0], TIME_COL: [10.0, 20.0, 30.0], EVENT_COL: [True, False, True]},
        index=['TCGA-A1-0001-01A-11R', 'TCGA-A1-0002-01A-11R', 'TCGA-A1-0001-06A-11R'],
    )
    cohort = select_cohort(model_data, {'TCGA-A1-0001'})

    assert list(cohort.index) == ['TCGA-A1-0001-01A-11R', 'TCGA-A1-0001-06A-11R']


def test_prepare_model_data(small_bundle):
    model_data, cohorts = prepare_model_data(small_bundle, verbose=False)

    assert model_data.shape == (50, 17)
    assert set(cohorts) == {'er', 'her2', 'tneg'}
    for patients in cohorts.values():
        assert all(len(barcode) == 12 for barcode in patients)


def test_drop_zero_days():
    model_data = pd.DataFrame({'GENE1': [1.0, 2.0], TIME_COL: [0.0, 5.0], EVENT_COL: [True, True]})
    assert drop_zero_days(model_data)[TIME_COL].tolist() == [5.0]


def test_sparse_gene_columns():
    predictors = pd.DataFrame({
        'MOSTLY_ZERO': [0.0] * 19 + [1.0],
        'DENSE': np.arange(20, dtype=float),
        TIME_COL: np.arange(20, dtype=float),
        EVENT_COL: [True] * 20,
    })
    assert sparse_gene_columns(predictors, 0.9) == ['MOSTLY_ZERO']


def test_event_indicator_treats_missing_status_as_censored():
    status = pd.Series([1.0, np.nan, 0.0])
    assert event_indicator(status).tolist() == [True, False, False]
