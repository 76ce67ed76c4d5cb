"""Grouped, stratification-constrained repeated k-fold generation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Sequence

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 1000
_SLOW_DRAW_WARNING = 50


@dataclass(frozen=True)
class OuterFold:
    repeat_id: int
    fold_id: int
    train_idx: np.ndarray
    test_idx: np.ndarray


@dataclass(frozen=True)
class FoldSet:
    """One partition of the rows into k test folds.

    ``folds`` maps fold id (1..k) to ascending row indices.
    """

    repeat_id: int
    folds: dict[int, np.ndarray]
    n_rows: int
    attempts: int = 1

    @property
    def k(self) -> int:
        return len(self.folds)

    def test_idx(self, fold_id: int) -> np.ndarray:
        return self.folds[fold_id]

    def train_idx(self, fold_id: int) -> np.ndarray:
        mask = np.ones(self.n_rows, dtype=bool)
        mask[self.folds[fold_id]] = False
        return np.flatnonzero(mask)

    def fold_of(self) -> np.ndarray:
        out = np.zeros(self.n_rows, dtype=int)
        for fold_id, idx in self.folds.items():
            out[idx] = fold_id
        return out


@dataclass(frozen=True)
class RepeatedFoldSet:
    fold_sets: tuple[FoldSet, ...]
    seed: int | None = None

    @property
    def n(self) -> int:
        return len(self.fold_sets)

    @property
    def n_rows(self) -> int:
        return self.fold_sets[0].n_rows if self.fold_sets else 0

    def __len__(self) -> int:
        return sum(fs.k for fs in self.fold_sets)


def _distinct_folds_per_category(strata: np.ndarray, fold_of_row: np.ndarray) -> pd.Series:
    frame = pd.DataFrame({"stratum": strata, "fold": fold_of_row})
    return frame.groupby("stratum", observed=True)["fold"].nunique()


def _check_inputs(groups: np.ndarray, strata: np.ndarray, k: int) -> None:
    if len(groups) != len(strata):
        raise ConfigurationError(
            f"groups and strata must have the same length ({len(groups)} vs {len(strata)})"
        )
    if k < 2:
        raise ConfigurationError(f"k must be at least 2, got {k}")
    if pd.isna(groups).any():
        raise ConfigurationError("groups contain missing values")
    if pd.isna(strata).any():
        raise ConfigurationError("stratification values contain missing entries")

    n_groups = len(pd.unique(groups))
    if n_groups < k:
        raise ConfigurationError(
            f"{n_groups} distinct groups cannot fill {k} folds; lower k or add groups"
        )

    groups_per_stratum = (
        pd.DataFrame({"group": groups, "stratum": strata})
        .groupby("stratum", observed=True)["group"]
        .nunique()
    )
    single = groups_per_stratum[groups_per_stratum < 2]
    if len(single) > 0:
        category = str(single.index[0])
        raise ConfigurationError(
            f"stratification category {category!r} occurs in a single group and "
            "can never span two folds",
            category=category,
        )


def grouped_folds(
    groups: Sequence,
    strata: Sequence,
    k: int,
    *,
    rng: np.random.Generator | None = None,
    seed: int | None = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    repeat_id: int = 1,
) -> FoldSet:
    """Assign whole groups to k folds so every stratum spans two or more folds.

    The distinct group ids are permuted and dealt out cyclically
    (fold = position mod k, numbered from 1). Draws that leave a
    stratification category inside a single fold are rejected and redrawn,
    up to ``max_attempts`` times.
    """
    groups = np.asarray(groups)
    strata = np.asarray(strata)
    _check_inputs(groups, strata, k)
    if max_attempts < 1:
        raise ConfigurationError(f"max_attempts must be positive, got {max_attempts}")

    if rng is None:
        rng = np.random.default_rng(seed)

    unique_groups, group_pos = np.unique(groups, return_inverse=True)
    group_pos = group_pos.reshape(-1)

    failing: str | None = None
    for attempt in range(1, max_attempts + 1):
        order = rng.permutation(len(unique_groups))
        fold_of_group = np.empty(len(unique_groups), dtype=int)
        fold_of_group[order] = np.arange(len(unique_groups)) % k + 1
        fold_of_row = fold_of_group[group_pos]

        spread = _distinct_folds_per_category(strata, fold_of_row)
        bad = spread[spread < 2]
        if len(bad) == 0:
            if attempt >= _SLOW_DRAW_WARNING:
                logger.warning(
                    "Repeat %s needed %d draws to satisfy stratification", repeat_id, attempt
                )
            folds = {}
            for fold_id in range(1, k + 1):
                idx = np.flatnonzero(fold_of_row == fold_id)
                idx.flags.writeable = False
                folds[fold_id] = idx
            return FoldSet(
                repeat_id=repeat_id,
                folds=folds,
                n_rows=len(groups),
                attempts=attempt,
            )

        failing = str(bad.index[0])
        logger.debug(
            "Repeat %s draw %d rejected: category %r confined to one fold",
            repeat_id,
            attempt,
            failing,
        )

    raise ConfigurationError(
        f"no fold assignment spreads category {failing!r} over two folds "
        f"after {max_attempts} attempts",
        category=failing,
    )


def repeated_grouped_folds(
    groups: Sequence,
    strata: Sequence,
    k: int,
    n: int,
    *,
    seed: int | None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    n_jobs: int = 1,
) -> RepeatedFoldSet:
    """Draw ``n`` independent grouped fold sets, with repeat ids 1..n.

    Each repeat gets its own generator spawned from ``SeedSequence(seed)``,
    so the result does not depend on ``n_jobs``.
    """
    if n < 1:
        raise ConfigurationError(f"n must be at least 1, got {n}")
    groups = np.asarray(groups)
    strata = np.asarray(strata)
    _check_inputs(groups, strata, k)

    children = np.random.SeedSequence(seed).spawn(n)
    logger.info("Generating %d x %d-fold grouped splits (seed=%s)", n, k, seed)

    fold_sets = Parallel(n_jobs=n_jobs, prefer="threads")(
        delayed(grouped_folds)(
            groups,
            strata,
            k,
            rng=np.random.default_rng(child),
            max_attempts=max_attempts,
            repeat_id=repeat_id,
        )
        for repeat_id, child in enumerate(children, start=1)
    )
    return RepeatedFoldSet(fold_sets=tuple(fold_sets), seed=seed)


def validate_fold_set(fold_set: FoldSet, groups: Sequence, strata: Sequence) -> None:
    """Raise ConfigurationError unless ``fold_set`` is a valid grouped partition."""
    groups = np.asarray(groups)
    strata = np.asarray(strata)
    if fold_set.n_rows != len(groups):
        raise ConfigurationError("fold set does not cover the dataset")

    all_idx = np.concatenate(list(fold_set.folds.values()))
    if len(all_idx) != len(np.unique(all_idx)):
        raise ConfigurationError(f"repeat {fold_set.repeat_id}: folds overlap")
    if not np.array_equal(np.sort(all_idx), np.arange(fold_set.n_rows)):
        raise ConfigurationError(f"repeat {fold_set.repeat_id}: folds do not cover all rows")

    fold_of_row = fold_set.fold_of()
    folds_per_group = pd.Series(fold_of_row).groupby(groups).nunique()
    split = folds_per_group[folds_per_group > 1]
    if len(split) > 0:
        raise ConfigurationError(
            f"repeat {fold_set.repeat_id}: group {split.index[0]!r} spans several folds"
        )

    spread = _distinct_folds_per_category(strata, fold_of_row)
    bad = spread[spread < 2]
    if len(bad) > 0:
        category = str(bad.index[0])
        raise ConfigurationError(
            f"repeat {fold_set.repeat_id}: category {category!r} confined to one fold",
            category=category,
        )


def iter_outer_folds(repeated: RepeatedFoldSet) -> Iterator[OuterFold]:
    """Yield every (repeat, fold) unit in repeat then fold order."""
    for fold_set in repeated.fold_sets:
        for fold_id in sorted(fold_set.folds):
            yield OuterFold(
                repeat_id=fold_set.repeat_id,
                fold_id=fold_id,
                train_idx=fold_set.train_idx(fold_id),
                test_idx=fold_set.test_idx(fold_id),
            )


def fold_assignment_frame(repeated: RepeatedFoldSet) -> pd.DataFrame:
    frames = [
        pd.DataFrame({"repeat": fs.repeat_id, "fold": fs.fold_of(), "row": np.arange(fs.n_rows)})
        for fs in repeated.fold_sets
    ]
    return pd.concat(frames, ignore_index=True)
