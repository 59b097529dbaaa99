"""
Collect per-drug performance into one table per subtype, write it, and summarize it.
"""

from pathlib import Path

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from .config import OUTPUT_CONFIG
from .survival_models import DrugResult

RESULT_COLUMNS = ['drug', 'test.cindex', 'train.cindex', 'testindex.sd', 'trainindex.sd', 'genecount']


def aggregate_results(outcomes):
    """
    Table of successful drug results in evaluation order; failures are dropped.
    """
    rows = [
        {
            'drug': outcome.drug,
            'test.cindex': outcome.test_cindex,
            'train.cindex': outcome.train_cindex,
            'testindex.sd': outcome.test_sd,
            'trainindex.sd': outcome.train_sd,
            'genecount': outcome.gene_count,
        }
        for outcome in outcomes if isinstance(outcome, DrugResult)
    ]
    return pd.DataFrame(rows, columns=RESULT_COLUMNS)


def result_path(subtype, method, results_dir=OUTPUT_CONFIG['results_dir'],
                file_pattern=OUTPUT_CONFIG['file_pattern']):
    return Path(results_dir) / file_pattern.format(subtype=subtype, method=method)


def write_results(results_df, subtype, method, results_dir=OUTPUT_CONFIG['results_dir'],
                  file_pattern=OUTPUT_CONFIG['file_pattern'], sep=OUTPUT_CONFIG['sep']):
    """Write a subtype's result table with a header row and without the index."""
    path = result_path(subtype, method, results_dir, file_pattern)
    path.parent.mkdir(parents=True, exist_ok=True)
    results_df.to_csv(path, sep=sep, index=False)
    return path


def read_results(path, sep=OUTPUT_CONFIG['sep']):
    return pd.read_csv(path, sep=sep)


def summarize_results(results_df, subtype, method, n_skipped=0, top_n=OUTPUT_CONFIG['top_n']):
    """
    Print the best drugs of a subtype by mean test concordance
    """
    print("\n" + "="*50)
    print(f"DRUG RANKING - {subtype.upper()} ({method.upper()})")
    print("="*50)
    print(f"Drugs evaluated: {len(results_df)}, skipped: {n_skipped}")

    if results_df.empty:
        print("No drug results available")
        return

    ranked = results_df.sort_values('test.cindex', ascending=False).head(top_n)
    for _, row in ranked.iterrows():
        print(f"{str(row['drug']):>10} | C-index: {row['test.cindex']:.3f} ± {row['testindex.sd']:.3f}"
              f" | train: {row['train.cindex']:.3f} | genes: {int(row['genecount'])}")


def plot_drug_ranking(results_df, subtype, method, save_path=None, top_n=OUTPUT_CONFIG['top_n']):
    """
    Bar chart of the top drugs by mean test concordance with standard deviation error bars.

    Args:
        save_path: Path to save plot (if None, displays plot)
    """
    if results_df.empty:
        print(f"Warning: no results to plot for {subtype}")
        return None

    ranked = results_df.sort_values('test.cindex', ascending=False).head(top_n).copy()
    ranked['drug'] = ranked['drug'].astype(str)

    fig, ax = plt.subplots(figsize=(8, max(3, 0.35 * len(ranked))))
    sns.barplot(data=ranked, x='test.cindex', y='drug', color='steelblue', ax=ax)
    ax.errorbar(ranked['test.cindex'], range(len(ranked)), xerr=ranked['testindex.sd'].fillna(0),
                fmt='none', ecolor='black', capsize=3)
    ax.axvline(0.5, color='grey', linestyle='--', linewidth=1)
    ax.set_xlabel('Mean test C-index', fontsize=12)
    ax.set_ylabel('Drug', fontsize=12)
    ax.set_title(f'Drug signature survival models - {subtype} ({method})', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        Path(save_path).parent.mkdir(parents=True, exist_ok=True)
        plt.savefig(save_path, dpi=300, bbox_inches='tight')
        print(f"Ranking plot saved to {save_path}")
    else:
        plt.show()
    plt.close(fig)
    return save_path
