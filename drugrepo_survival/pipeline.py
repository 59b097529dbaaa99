"""
Drug repurposing by survival modelling of drug gene signatures.

For every breast cancer subtype cohort (ER+, HER2+, triple negative) and each drug,
the expression of the drug's gene signature predicts patient survival with a random
survival forest or Cox model. Per subtype, a table is written with six fields per drug:
- drug:          index of the drug in HMS LINCS
- test.cindex:   mean concordance index on held-out folds (main measure of performance)
- train.cindex:  mean concordance index on training folds
- testindex.sd:  standard deviation of the test concordance across folds
- trainindex.sd: standard deviation of the train concordance across folds
- genecount:     number of signature genes found in the expression data
"""

import argparse
import sys
import warnings
from pathlib import Path

from . import config as cfg
from .data_loader import load_bundle, make_synthetic_bundle, save_bundle
from .preprocessing import prepare_model_data, select_cohort
from .results import aggregate_results, plot_drug_ranking, summarize_results, write_results
from .survival_models import DrugFailure, evaluate_drug


def folds_for_subtype(subtype, cv_config):
    return cv_config['subtype_folds'].get(subtype, cv_config['n_folds'])


def run_subtype(subtype, cohort_data, signatures, drug_ids, config):
    """
    Evaluate every drug signature on one cohort.

    Returns:
        (result table, list of DrugFailure for skipped drugs)
    """
    verbose = config['output']['verbose']
    n_folds = folds_for_subtype(subtype, config['cv'])

    outcomes = []
    for position, (drug, gene_list) in enumerate(zip(drug_ids, signatures), start=1):
        if verbose:
            print(f"Iteration number {position} (drug {drug})")

        outcome = evaluate_drug(
            cohort_data, drug, gene_list, position, n_folds,
            model_config=config['model'], cv_config=config['cv'], data_config=config['data']
        )
        if isinstance(outcome, DrugFailure) and verbose:
            print(f"✗ Drug {drug} skipped: {outcome.reason}")
        outcomes.append(outcome)

    failures = [outcome for outcome in outcomes if isinstance(outcome, DrugFailure)]
    return aggregate_results(outcomes), failures


def run_pipeline(bundle, config=None, subtypes=None):
    """
    Run the subtype loop on a loaded bundle and write one result table per subtype.

    Returns:
        Dict of subtype -> result table
    """
    config = config or cfg.get_config()
    subtypes = subtypes or cfg.SUBTYPES
    verbose = config['output']['verbose']
    method = config['model']['method']
    output = config['output']

    model_data, cohorts = prepare_model_data(bundle, config['data'], config['subtype'], verbose=verbose)

    all_results = {}
    for subtype in subtypes:
        if subtype not in cohorts:
            raise KeyError(f"Unknown subtype '{subtype}', expected one of {sorted(cohorts)}")

        cohort_data = select_cohort(model_data, cohorts[subtype], config['data']['barcode_length'])
        if verbose:
            print("\n" + "="*50)
            print(f"SUBTYPE {subtype.upper()}: {len(cohort_data)} samples, "
                  f"{folds_for_subtype(subtype, config['cv'])}-fold CV, method {method}")
            print("="*50)

        results_df, failures = run_subtype(
            subtype, cohort_data, bundle['signatures'], bundle['drug_ids'], config
        )
        path = write_results(results_df, subtype, method, output['results_dir'],
                             output['file_pattern'], output['sep'])
        if verbose:
            print(f"✓ Results written to {path}")
            summarize_results(results_df, subtype, method, n_skipped=len(failures), top_n=output['top_n'])

        if output['save_plots']:
            plot_path = Path(output['results_dir']) / f"{subtype}_{method}_ranking.png"
            plot_drug_ranking(results_df, subtype, method, save_path=plot_path, top_n=output['top_n'])

        all_results[subtype] = results_df

    return all_results


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description='Rank drugs by survival models on their gene signatures per breast cancer subtype'
    )
    parser.add_argument('--data-dir', default=None, help='directory holding the input bundle')
    parser.add_argument('--bundle', default=None, help='bundle file name inside --data-dir')
    parser.add_argument('--output-dir', default=None, help='destination of the result tables')
    parser.add_argument('--method', choices=cfg.METHODS, default=None, help='survival model')
    parser.add_argument('--n-folds', type=int, default=None, help='cross-validation folds')
    parser.add_argument('--n-trees', type=int, default=None, help='trees per random survival forest')
    parser.add_argument('--subtypes', nargs='+', choices=cfg.SUBTYPES, default=None)
    parser.add_argument('--quick', action='store_true', help='small forests and few folds')
    parser.add_argument('--no-plots', action='store_true', help='skip ranking plots')
    parser.add_argument('--make-synthetic', action='store_true',
                        help='write a synthetic bundle to --data-dir and exit')
    return parser.parse_args(argv)


def config_from_args(args):
    overrides = {'data': {}, 'model': {}, 'cv': {}, 'output': {}}
    if args.quick:
        for section, values in cfg.QUICK_TEST_CONFIG.items():
            overrides[section].update(values)
    if args.data_dir:
        overrides['data']['base_path'] = args.data_dir
    if args.bundle:
        overrides['data']['bundle_file'] = args.bundle
    if args.output_dir:
        overrides['output']['results_dir'] = args.output_dir
    if args.method:
        overrides['model']['method'] = args.method
    if args.n_folds is not None:
        overrides['cv']['n_folds'] = args.n_folds
    if args.n_trees is not None:
        overrides['model']['n_estimators'] = args.n_trees
    if args.no_plots:
        overrides['output']['save_plots'] = False
    return cfg.get_config(overrides)


def main(argv=None):
    args = parse_args(argv)
    try:
        config = config_from_args(args)
    except ValueError as e:
        print(f"✗ Invalid configuration: {e}", file=sys.stderr)
        return 1
    bundle_path = Path(config['data']['base_path']) / config['data']['bundle_file']

    if args.make_synthetic:
        save_bundle(make_synthetic_bundle(), bundle_path)
        print(f"✓ Synthetic bundle written to {bundle_path}")
        return 0

    warnings.filterwarnings('ignore')

    try:
        bundle = load_bundle(bundle_path)
    except (FileNotFoundError, ValueError) as e:
        print(f"✗ Error loading data: {e}", file=sys.stderr)
        return 1
    print(f"✓ Data loaded: {len(bundle['drug_ids'])} drugs, "
          f"{bundle['expression'].shape[1] - 1} samples")

    try:
        run_pipeline(bundle, config, subtypes=args.subtypes)
    except ValueError as e:
        print(f"✗ Error preparing data: {e}", file=sys.stderr)
        return 1
    print("\nAnalysis complete! Check the result tables above.")
    return 0


if __name__ == '__main__':
    sys.exit(main())
