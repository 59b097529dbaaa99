import numpy as np

from drugrepo_survival.results import (
    RESULT_COLUMNS,
    aggregate_results,
    plot_drug_ranking,
    read_results,
    result_path,
    write_results,
)
from drugrepo_survival.survival_models import DrugFailure, DrugResult


def _outcomes():
    return [
        DrugResult(drug=11, test_cindex=0.61, train_cindex=0.80, test_sd=0.05, train_sd=0.01, gene_count=4),
        DrugFailure(drug=12, reason='ValueError: boom'),
        DrugResult(drug=13, test_cindex=0.55, train_cindex=0.78, test_sd=0.07, train_sd=0.02, gene_count=2),
    ]


def test_failures_leave_gaps_in_drug_ids():
    results_df = aggregate_results(_outcomes())

    assert list(results_df.columns) == RESULT_COLUMNS
    assert results_df['drug'].tolist() == [11, 13]
    assert results_df['genecount'].tolist() == [4, 2]


def test_empty_results_keep_columns():
    results_df = aggregate_results([DrugFailure(drug=1, reason='x')])
    assert results_df.empty
    assert list(results_df.columns) == RESULT_COLUMNS


def test_result_file_name_encodes_subtype_and_method(tmp_path):
    path = result_path('her2', 'cox', tmp_path)
    assert path.name == 'cox_drug_results_subtype_her2_cox.txt'


def test_written_table_has_header_and_no_index(tmp_path):
    results_df = aggregate_results(_outcomes())
    path = write_results(results_df, 'er', 'rsf', tmp_path / 'out')

    assert path.exists()
    header = path.read_text().splitlines()[0]
    assert header == 'drug test.cindex train.cindex testindex.sd trainindex.sd genecount'

    loaded = read_results(path)
    assert list(loaded.columns) == RESULT_COLUMNS
    np.testing.assert_allclose(loaded['test.cindex'], [0.61, 0.55])


def test_ranking_plot_is_saved(tmp_path):
    results_df = aggregate_results(_outcomes())
    save_path = tmp_path / 'er_rsf_ranking.png'

    plot_drug_ranking(results_df, 'er', 'rsf', save_path=save_path)

    assert save_path.exists()


def test_ranking_plot_closes_its_figure(tmp_path):
    import matplotlib.pyplot as plt

    plt.close('all')
    plot_drug_ranking(aggregate_results(_outcomes()), 'er', 'rsf', save_path=tmp_path / 'plot.png')

    assert plt.get_fignums() == []
