"""
Item Data Loader Module

이 모듈은 성격검사 응답 데이터(응답자 × 문항)를 불러오고
결측치를 listwise 방식으로 제거하는 기능을 제공합니다.
제거된 행과 전부 결측인 문항은 로그와 MissingDataReport로 보고합니다.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .config import DEFAULT_FACTOR_ITEMS, DEFAULT_SCALE_RANGE

logger = logging.getLogger(__name__)


@dataclass
class MissingDataReport:
    """결측치 처리 결과 요약"""

    n_rows_before: int
    n_rows_after: int
    all_missing_rows: int = 0
    missing_by_item: Dict[str, int] = field(default_factory=dict)

    @property
    def n_rows_removed(self) -> int:
        return self.n_rows_before - self.n_rows_after

    @property
    def removal_rate(self) -> float:
        if self.n_rows_before == 0:
            return 0.0
        return self.n_rows_removed / self.n_rows_before

    def summary(self) -> str:
        """결측치 처리 요약 문자열"""
        lines = [
            f"listwise 삭제: {self.n_rows_before} → {self.n_rows_after} 행 "
            f"({self.n_rows_removed}행 제거, {self.removal_rate:.1%})",
            f"전부 결측인 행: {self.all_missing_rows}",
        ]
        worst = sorted(
            ((item, count) for item, count in self.missing_by_item.items() if count > 0),
            key=lambda x: x[1], reverse=True,
        )
        if worst:
            lines.append("결측 문항 (상위 5개): " + ", ".join(f"{i}={c}" for i, c in worst[:5]))
        return "\n".join(lines)


class ItemDataLoader:
    """응답자 × 문항 데이터를 로딩하는 클래스"""

    def __init__(self, data_path: Optional[Union[str, Path]] = None,
                 items: Optional[List[str]] = None,
                 reverse_items: Optional[List[str]] = None,
                 scale_range: Tuple[int, int] = DEFAULT_SCALE_RANGE):
        """
        Item Data Loader 초기화

        Args:
            data_path (Optional[Union[str, Path]]): 원자료 CSV 경로
            items (Optional[List[str]]): 분석할 문항 (기본: bfi 25문항)
            reverse_items (Optional[List[str]]): 역코딩할 문항
            scale_range (Tuple[int, int]): 리커트 척도 최소/최대값
        """
        self.data_path = Path(data_path) if data_path is not None else None
        if items is None:
            items = [item for group in DEFAULT_FACTOR_ITEMS.values() for item in group]
        self.items = list(items)
        self.reverse_items = list(reverse_items or [])
        self.scale_min, self.scale_max = scale_range

        unknown = [item for item in self.reverse_items if item not in self.items]
        if unknown:
            raise ValueError(f"분석 문항에 없는 역문항: {unknown}")

    def load_raw(self, path: Union[str, Path]) -> pd.DataFrame:
        """
        원자료 CSV 파일 로딩

        Args:
            path (Union[str, Path]): CSV 파일 경로

        Returns:
            pd.DataFrame: 원자료
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"데이터 파일을 찾을 수 없습니다: {path}")

        try:
            df = pd.read_csv(path, encoding='utf-8-sig')
        except pd.errors.EmptyDataError:
            raise ValueError(f"데이터 파일이 비어있습니다: {path}")

        # R에서 내보낸 파일은 첫 컬럼이 이름 없는 행 번호
        first_col = df.columns[0]
        if first_col == '' or str(first_col).startswith('Unnamed'):
            df = df.set_index(first_col)
            df.index.name = None

        if df.empty:
            raise ValueError(f"데이터 파일이 비어있습니다: {path}")

        logger.info(f"원자료 로딩 완료: {path.name} {df.shape}")
        return df

    def select_items(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        분석 문항 컬럼만 선택하고 숫자형으로 변환

        Args:
            df (pd.DataFrame): 원자료

        Returns:
            pd.DataFrame: 문항 데이터 (숫자가 아닌 값은 NaN)
        """
        if df.columns.duplicated().any():
            dup = df.columns[df.columns.duplicated()].tolist()
            raise ValueError(f"중복된 컬럼이 있습니다: {dup}")

        missing_items = [item for item in self.items if item not in df.columns]
        if missing_items:
            raise ValueError(f"데이터에 누락된 문항들: {missing_items}")

        extra = [col for col in df.columns if col not in self.items]
        if extra:
            logger.info(f"분석에서 제외되는 컬럼: {extra}")

        items_df = df[self.items].apply(pd.to_numeric, errors='coerce')

        coerced = int(items_df.isna().sum().sum() - df[self.items].isna().sum().sum())
        if coerced > 0:
            logger.warning(f"숫자가 아닌 응답 {coerced}개를 결측치로 처리")

        return items_df.astype(float)

    def check_missing(self, df: pd.DataFrame) -> MissingDataReport:
        """
        결측치 현황 점검

        전부 결측인 문항이 있으면 listwise 삭제 시 모든 행이 제거되므로
        0으로 채우지 않고 오류로 보고합니다.

        Args:
            df (pd.DataFrame): 문항 데이터

        Returns:
            MissingDataReport: 삭제 전 결측 현황
        """
        missing_by_item = df.isna().sum().astype(int).to_dict()

        all_missing_cols = [col for col in df.columns if df[col].isna().all()]
        if all_missing_cols:
            logger.error(f"모든 응답이 결측인 문항: {all_missing_cols}")
            raise ValueError(f"모든 응답이 결측인 문항이 있습니다: {all_missing_cols}")

        all_missing_rows = int(df.isna().all(axis=1).sum())
        if all_missing_rows > 0:
            logger.warning(f"모든 문항이 결측인 응답자: {all_missing_rows}명")

        return MissingDataReport(
            n_rows_before=len(df),
            n_rows_after=len(df),
            all_missing_rows=all_missing_rows,
            missing_by_item=missing_by_item,
        )

    def listwise_delete(self, df: pd.DataFrame) -> Tuple[pd.DataFrame, MissingDataReport]:
        """
        결측치가 있는 행 제거 (listwise deletion)

        Args:
            df (pd.DataFrame): 문항 데이터

        Returns:
            Tuple[pd.DataFrame, MissingDataReport]: 완전한 응답만 남긴 데이터와 보고서
        """
        report = self.check_missing(df)
        clean = df.dropna()
        report.n_rows_after = len(clean)

        if report.n_rows_removed > 0:
            logger.info(
                f"결측치 제거: {report.n_rows_before} → {report.n_rows_after} 행 "
                f"({report.n_rows_removed}행 제거)"
            )

        if clean.empty:
            raise ValueError("결측치 제거 후 남은 응답이 없습니다")

        return clean, report

    def reverse_code(self, df: pd.DataFrame, items: Optional[List[str]] = None) -> pd.DataFrame:
        """
        역문항 역코딩: (최소 + 최대) - 원점수

        Args:
            df (pd.DataFrame): 문항 데이터
            items (Optional[List[str]]): 역코딩할 문항 (기본: 초기화 시 지정한 역문항)

        Returns:
            pd.DataFrame: 역코딩된 데이터 복사본
        """
        items = self.reverse_items if items is None else items
        reversed_df = df.copy()
        for item in items:
            if item not in reversed_df.columns:
                raise ValueError(f"역코딩할 문항이 없습니다: {item}")
            reversed_df[item] = (self.scale_max + self.scale_min) - reversed_df[item]
        if items:
            logger.info(f"역문항 {len(items)}개 역코딩 완료: {items}")
        return reversed_df

    def load(self, path: Optional[Union[str, Path]] = None) -> Tuple[pd.DataFrame, MissingDataReport]:
        """
        원자료 로딩 → 문항 선택 → (역코딩) → listwise 삭제

        Args:
            path (Optional[Union[str, Path]]): CSV 경로 (기본: 초기화 시 경로)

        Returns:
            Tuple[pd.DataFrame, MissingDataReport]: 관측 행렬과 결측 보고서
        """
        path = path if path is not None else self.data_path
        if path is None:
            raise ValueError("데이터 파일 경로가 지정되지 않았습니다")

        raw = self.load_raw(path)
        return self.prepare(raw)

    def prepare(self, raw: pd.DataFrame) -> Tuple[pd.DataFrame, MissingDataReport]:
        """
        메모리에 있는 원자료를 분석용 관측 행렬로 변환

        Args:
            raw (pd.DataFrame): 원자료

        Returns:
            Tuple[pd.DataFrame, MissingDataReport]: 관측 행렬과 결측 보고서
        """
        items_df = self.select_items(raw)
        if self.reverse_items:
            items_df = self.reverse_code(items_df)
        clean, report = self.listwise_delete(items_df)

        # 로딩 이후 관측 행렬은 읽기 전용
        values = clean.to_numpy(copy=True)
        values.flags.writeable = False
        observations = pd.DataFrame(values, index=clean.index, columns=clean.columns, copy=False)

        logger.info(f"관측 행렬 준비 완료: {observations.shape}")
        return observations, report


def load_observations(path: Union[str, Path],
                      items: Optional[List[str]] = None,
                      reverse_items: Optional[List[str]] = None,
                      scale_range: Tuple[int, int] = DEFAULT_SCALE_RANGE
                      ) -> Tuple[pd.DataFrame, MissingDataReport]:
    """
    관측 행렬을 로딩하는 편의 함수

    Args:
        path (Union[str, Path]): CSV 파일 경로
        items (Optional[List[str]]): 분석 문항
        reverse_items (Optional[List[str]]): 역코딩할 문항
        scale_range (Tuple[int, int]): 척도 범위

    Returns:
        Tuple[pd.DataFrame, MissingDataReport]: 관측 행렬과 결측 보고서
    """
    loader = ItemDataLoader(path, items=items, reverse_items=reverse_items,
                            scale_range=scale_range)
    return loader.load()


def describe_items(data: pd.DataFrame) -> pd.DataFrame:
    """문항별 기술통계 (평균, 표준편차, 최소, 최대)"""
    summary = pd.DataFrame({
        'mean': data.mean(),
        'sd': data.std(ddof=1),
        'min': data.min(),
        'max': data.max(),
        'n_unique': data.nunique(),
    })
    summary['zero_variance'] = np.isclose(summary['sd'].fillna(0.0), 0.0)
    return summary.round(4)
