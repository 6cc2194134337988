#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
네트워크 분석 실행 스크립트

5요인 성격검사 문항 응답으로 다음 단계를 수행합니다:
- 데이터 로딩 및 listwise 결측 삭제
- 5요인 확인적 요인분석 (semopy)
- 상관 네트워크 / 편상관 네트워크 추정
- 중심성 지표 계산
- 엣지 가중치 부트스트랩
- 그래프, 결과 표, Markdown 보고서 저장

사용 예:
    python run_network_analysis.py --data bfi.csv --prune sig --bootstrap 1000
    python run_network_analysis.py --simulate 1000 --estimator glasso --no-bootstrap
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

from psychonetwork import (
    BootstrapConfig,
    NetworkAnalysisConfig,
    NetworkEstimationConfig,
    VisualizationConfig,
    run_network_analysis,
    setup_logging,
)
from psychonetwork.config import DEFAULT_REVERSE_ITEMS, VALID_ADJUSTMENTS, VALID_ESTIMATORS
from psychonetwork.simulation import simulate_five_factor_data

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='심리측정 네트워크 분석 실행')
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument('--data', type=str, help='응답자 × 문항 CSV 파일 경로')
    source.add_argument('--simulate', type=int, metavar='N',
                        help='5요인 구조의 합성 데이터 N명으로 실행')
    parser.add_argument('--estimator', choices=VALID_ESTIMATORS, default='pcor',
                        help='네트워크 추정방법 (기본: pcor)')
    parser.add_argument('--prune', choices=['sig', 'none'], default='sig',
                        help='유의성 pruning (glasso에는 적용되지 않음)')
    parser.add_argument('--alpha', type=float, default=0.05, help='pruning 유의수준')
    parser.add_argument('--adjust', choices=VALID_ADJUSTMENTS, default='none',
                        help='다중비교 보정')
    parser.add_argument('--bootstrap', type=int, default=1000, help='부트스트랩 샘플 수')
    parser.add_argument('--no-bootstrap', action='store_true', help='부트스트랩 생략')
    parser.add_argument('--no-cfa', action='store_true', help='확인적 요인분석 생략')
    parser.add_argument('--workers', type=int, default=None,
                        help='부트스트랩 병렬 작업 수 (기본: CPU 코어 수 - 1)')
    parser.add_argument('--threshold', type=float, default=0.0,
                        help='그래프에 표시할 최소 |w| (분석에는 영향 없음)')
    parser.add_argument('--reverse-items', action='store_true',
                        help='bfi 채점 키의 역문항을 역코딩')
    parser.add_argument('--seed', type=int, default=42, help='랜덤 시드')
    parser.add_argument('--output', type=str, default='results/network_analysis',
                        help='결과 저장 디렉토리')
    parser.add_argument('--log-file', action='store_true', help='로그 파일에도 기록')
    args = parser.parse_args(argv)
    if args.simulate is not None and args.simulate < 1:
        parser.error(f"--simulate는 1 이상이어야 합니다: {args.simulate}")
    return args


def build_config(args) -> NetworkAnalysisConfig:
    prune = None if args.prune == 'none' else args.prune
    if args.estimator == 'glasso' and prune is not None:
        print('⚠️ glasso는 정규화로 희소화되므로 유의성 pruning을 적용하지 않습니다.')
        prune = None

    return NetworkAnalysisConfig(
        reverse_items=list(DEFAULT_REVERSE_ITEMS) if args.reverse_items else [],
        run_cfa=not args.no_cfa,
        run_bootstrap=not args.no_bootstrap,
        estimation=NetworkEstimationConfig(
            estimator=args.estimator,
            prune=prune,
            alpha=args.alpha,
            adjust=args.adjust,
        ),
        bootstrap=BootstrapConfig(
            n_bootstrap=args.bootstrap,
            n_workers=args.workers,
            random_seed=args.seed,
        ),
        visualization=VisualizationConfig(threshold=args.threshold),
        output_dir=Path(args.output),
    )


def print_summary(results) -> None:
    network = results.network
    print('\n📊 네트워크 요약:')
    print('-' * 60)
    for key, value in network.summary().items():
        print(f'   {key}: {value}')

    if results.cfa_results is not None:
        print('\n📏 CFA 적합도 지수:')
        for index, value in results.cfa_results.get('fit_indices', {}).items():
            if value is not None:
                print(f'   {index}: {value:.3f}')
        for warning in results.cfa_results.get('warnings', []):
            print(f'   ⚠️ {warning}')

    if results.centrality is not None:
        print('\n📈 Strength 상위 5개 노드:')
        top = results.centrality['Strength'].sort_values(ascending=False).head(5)
        for node, value in top.items():
            print(f'   {node}: {value:.3f}')

    if results.bootstrap is not None:
        print(f'\n🔁 부트스트랩: {results.bootstrap.yield_summary()}')

    print(f'\n💾 결과 파일 {len(results.tables)}개, 그래프 {len(results.figures)}개 저장')
    print(f'📄 보고서: {results.report_path}')


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(log_to_file=args.log_file)

    print('=' * 80)
    print('심리측정 네트워크 분석 실행')
    print('=' * 80)
    print(f'분석 시작 시간: {datetime.now().strftime("%Y-%m-%d %H:%M:%S")}')

    try:
        config = build_config(args)
        if args.simulate is not None:
            print(f'🔄 합성 데이터 생성: {args.simulate}명')
            raw = simulate_five_factor_data(n=args.simulate, seed=args.seed)
            results = run_network_analysis(config=config, raw=raw)
        else:
            print(f'🔄 데이터 로딩: {args.data}')
            results = run_network_analysis(args.data, config=config)
    except (ValueError, RuntimeError, FileNotFoundError) as e:
        logger.error(f'분석 실패: {e}')
        print(f'❌ 오류 발생: {e}')
        return 1

    print_summary(results)
    print(f'\n🎉 전체 분석 완료! ({datetime.now().strftime("%Y-%m-%d %H:%M:%S")})')
    return 0


if __name__ == "__main__":
    sys.exit(main())
