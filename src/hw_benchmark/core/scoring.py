"""
Score normalization and aggregation.

Raw measurements are converted into dimensionless ratios against a baseline
machine, combined per category with a geometric mean (scaled so the baseline
scores 1000), and the category scores are then combined into a weighted total.
"""

import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)

import numpy as np

from .log import get_logger
from .results import (
    BenchmarkResult,
    BenchmarkResults,
    Category,
    CategoryScore,
    TestResult,
)

logger = get_logger(__name__)

SCORE_SCALE = 1000.0

Clamp = Tuple[float, float]


@dataclass(frozen=True)
class Baseline:
    """Reference value for one test key.

    ``higher_is_better=None`` defers to the direction reported by the test.
    """

    reference: float
    higher_is_better: Optional[bool] = None

    def __post_init__(self):
        if not (math.isfinite(self.reference) and self.reference > 0):
            raise ValueError(f"baseline reference must be positive, got {self.reference}")


class BaselineTable(Mapping[str, Baseline]):
    """Immutable mapping of test key to ``Baseline``."""

    def __init__(self, entries: Mapping[str, Union[Baseline, float]]):
        table = {}
        for key, entry in entries.items():
            if not isinstance(entry, Baseline):
                entry = Baseline(float(entry))
            table[key] = entry
        self._entries = MappingProxyType(table)

    def __getitem__(self, key: str) -> Baseline:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"BaselineTable({dict(self._entries)!r})"

    @classmethod
    def default(cls) -> "BaselineTable":
        return cls(DEFAULT_REFERENCE_VALUES)


# Baseline machine: Apple M1, 8 cores (4P + 4E), 8 GB. Medians of 5 full runs.
# Units must match the units the benchmarks report.
DEFAULT_REFERENCE_VALUES: Mapping[str, float] = MappingProxyType({
    # CPU single-core
    "integer": 1570,  # Mops/s
    "float": 126.8,  # Mops/s
    "simd": 8.84,  # GFLOPS
    "crypto": 1480,  # MB/s
    "compression": 498.57,  # MB/s
    # CPU multi-core
    "integer_multi": 9940,
    "float_multi": 803,
    "simd_multi": 6.18,
    "crypto_multi": 6590,
    "compression_multi": 2690,
    # memory
    "mem_read": 55.97,  # GB/s
    "mem_write": 25.59,  # GB/s
    "mem_copy": 27.84,  # GB/s
    "mem_latency": 54.95,  # ns, lower is better
    # disk (MB/s, cache bypassed; random is 4 KiB at QD1)
    "disk_seq_read": 2180,
    "disk_seq_write": 700,
    "disk_rand_read": 43,
    "disk_rand_write": 17,
    # gpu
    "gpu_compute": 149.2,  # GFLOPS
    "gpu_particles": 909.74,  # Mparts/s
    "gpu_blur": 1870,  # MP/s
    "gpu_edge": 5410,  # MP/s
    # ai (inferences/s, GFLOPS)
    "ai_cpu": 45.0,
    "ai_gpu": 180.0,
    "ai_neural engine": 350.0,
    "ai_bnns": 25.0,
})


def _validate_clamp(clamp: Optional[Clamp]) -> Optional[Clamp]:
    if clamp is None:
        return None
    low, high = clamp
    if not (0 < low <= high):
        raise ValueError(f"invalid ratio clamp {clamp!r}: need 0 < min <= max")
    return (float(low), float(high))


class ScoreNormalizer:
    """Convert a single test result into a ratio against its baseline."""

    def __init__(self, baselines: BaselineTable, clamp: Optional[Clamp] = None):
        self.baselines = baselines
        self.clamp = _validate_clamp(clamp)

    def ratio(self, test: TestResult, key: str) -> Optional[float]:
        """Return the baseline ratio, or None if the test is not scoreable.

        A test is excluded (not zeroed) when its key has no baseline or its
        value is not a positive finite number.
        """
        baseline = self.baselines.get(key)
        if baseline is None:
            logger.debug("No baseline for %r, excluded from scoring", key)
            return None
        if not test.is_valid:
            return None

        higher_is_better = baseline.higher_is_better
        if higher_is_better is None:
            higher_is_better = test.higher_is_better

        if higher_is_better:
            ratio = test.value / baseline.reference
        else:
            ratio = baseline.reference / test.value

        if self.clamp is not None:
            ratio = min(max(ratio, self.clamp[0]), self.clamp[1])
        return ratio


@dataclass(frozen=True)
class CategoryRule:
    """How a category's test names map onto baseline keys."""

    category: Category
    key_prefix: str = ""
    key_transform: Optional[Callable[[str], str]] = None
    clamp: Optional[Clamp] = None

    def key_for(self, test_name: str) -> str:
        name = test_name.lower()
        if self.key_transform is not None:
            name = self.key_transform(name)
        return f"{self.key_prefix}{name}"


def _spaces_to_underscores(name: str) -> str:
    return name.replace(" ", "_")


DEFAULT_RULES: Mapping[Category, CategoryRule] = MappingProxyType({
    Category.CPU_SINGLE: CategoryRule(Category.CPU_SINGLE),
    Category.CPU_MULTI: CategoryRule(Category.CPU_MULTI),
    Category.MEMORY: CategoryRule(Category.MEMORY, key_prefix="mem_"),
    # disk results vary a lot with SSD capacity, cache and volume state
    Category.DISK: CategoryRule(
        Category.DISK,
        key_prefix="disk_",
        key_transform=_spaces_to_underscores,
        clamp=(0.25, 4.0),
    ),
    Category.GPU: CategoryRule(Category.GPU, key_prefix="gpu_"),
    Category.AI: CategoryRule(Category.AI, key_prefix="ai_"),
})


def geometric_mean_score(ratios: Iterable[float]) -> float:
    """``1000 * exp(mean(ln(r)))``; 0 for an empty input."""
    values = np.asarray(list(ratios), dtype=np.float64)
    if values.size == 0:
        return 0.0
    return SCORE_SCALE * float(np.exp(np.mean(np.log(values))))


class CategoryAggregator:
    """Combine the tests of one category into a single score."""

    def __init__(self, baselines: BaselineTable, rule: CategoryRule):
        self.rule = rule
        self.normalizer = ScoreNormalizer(baselines, rule.clamp)

    @property
    def category(self) -> Category:
        return self.rule.category

    def ratios(self, tests: Iterable[TestResult]) -> List[float]:
        ratios = []
        for test in tests:
            ratio = self.normalizer.ratio(test, self.rule.key_for(test.name))
            if ratio is not None:
                ratios.append(ratio)
        return ratios

    def score(self, result: Optional[BenchmarkResult]) -> CategoryScore:
        """Score a category result.

        Args:
            result: The category's result, or None if it was not run

        Returns:
            NOT_RUN for a missing result, INVALID if any test value is
            non-finite or non-positive, otherwise the geometric-mean score
            (0.0 when no test has a baseline).
        """
        if result is None:
            return CategoryScore.not_run(self.category)
        if result.category != self.category:
            raise ValueError(
                f"Cannot score {result.category.value} result as {self.category.value}"
            )
        if result.has_invalid_tests:
            invalid = [t.name for t in result.tests if not t.is_valid]
            logger.warning(
                "%s has invalid measurements (%s), marking incomplete",
                self.category.display_name,
                ", ".join(invalid),
            )
            return CategoryScore.invalid(self.category)

        return CategoryScore.of(self.category, geometric_mean_score(self.ratios(result.tests)))


DEFAULT_WEIGHTS: Mapping[Category, float] = MappingProxyType({
    Category.CPU_SINGLE: 0.25,
    Category.CPU_MULTI: 0.25,
    Category.MEMORY: 0.15,
    Category.DISK: 0.15,
    Category.GPU: 0.20,
})

# scored on their own, never part of the weighted total
SECONDARY_CATEGORIES: Tuple[Category, ...] = (Category.AI,)


@dataclass(frozen=True)
class TotalScore:
    value: float
    weight_sum: float
    included: Tuple[Category, ...]


class TotalScoreAggregator:
    """Weighted mean over the categories that produced a usable score.

    Categories that were not run or are invalid contribute to neither the
    weighted sum nor the weight sum, so a partial run is not penalized for
    categories it never requested.
    """

    def __init__(self, weights: Mapping[Category, float] = DEFAULT_WEIGHTS):
        for category, weight in weights.items():
            if not (math.isfinite(weight) and weight >= 0):
                raise ValueError(f"Invalid weight {weight!r} for {category.value}")
        self.weights = MappingProxyType(dict(weights))

    def aggregate(self, scores: Iterable[CategoryScore]) -> TotalScore:
        weighted_sum = 0.0
        weight_sum = 0.0
        included = []
        for score in scores:
            weight = self.weights.get(score.category)
            if weight is None or not score.is_scoreable:
                continue
            weighted_sum += score.value * weight
            weight_sum += weight
            included.append(score.category)

        total = weighted_sum / weight_sum if weight_sum > 0 else 0.0
        return TotalScore(total, weight_sum, tuple(included))

    def total(self, scores: Iterable[CategoryScore]) -> float:
        return self.aggregate(scores).value


@dataclass(frozen=True)
class BenchmarkScores:
    """Per-category scores plus the weighted total and secondary scores."""

    categories: Mapping[Category, CategoryScore]
    total: float
    secondary: Mapping[Category, CategoryScore]

    @property
    def partial_run(self) -> bool:
        """True when some weighted category was not requested."""
        return any(not score.ran for score in self.categories.values())

    def score_for(self, category: Category) -> CategoryScore:
        if category in self.categories:
            return self.categories[category]
        return self.secondary[category]

    def to_dict(self) -> Dict[str, Any]:
        def _entry(score: CategoryScore) -> Dict[str, Any]:
            return {"state": score.state.value, "ran": score.ran, "score": score.value}

        return {
            "categories": {c.value: _entry(s) for c, s in self.categories.items()},
            "secondary": {c.value: _entry(s) for c, s in self.secondary.items()},
            "total": self.total,
            "partial_run": self.partial_run,
        }


class BenchmarkScorer:
    """Score a full set of results against a baseline table."""

    def __init__(
        self,
        baselines: Optional[BaselineTable] = None,
        rules: Optional[Mapping[Category, CategoryRule]] = None,
        weights: Optional[Mapping[Category, float]] = None,
        secondary: Iterable[Category] = SECONDARY_CATEGORIES,
    ):
        self.baselines = baselines if baselines is not None else BaselineTable.default()
        rules = rules if rules is not None else DEFAULT_RULES
        self.total_aggregator = TotalScoreAggregator(
            weights if weights is not None else DEFAULT_WEIGHTS
        )
        self.secondary = tuple(secondary)

        overlap = set(self.secondary) & set(self.total_aggregator.weights)
        if overlap:
            raise ValueError(
                f"Secondary categories cannot be weighted: {sorted(c.value for c in overlap)}"
            )

        self._aggregators: Dict[Category, CategoryAggregator] = {}
        for category in list(self.total_aggregator.weights) + list(self.secondary):
            if category not in rules:
                raise ValueError(f"No scoring rule for category: {category.value}")
            self._aggregators[category] = CategoryAggregator(self.baselines, rules[category])

    def score_category(self, results: BenchmarkResults, category: Category) -> CategoryScore:
        if category not in self._aggregators:
            raise ValueError(f"Unknown benchmark category: {category.value}")
        return self._aggregators[category].score(results.result_for(category))

    def calculate_scores(self, results: BenchmarkResults) -> BenchmarkScores:
        categories = {
            category: self.score_category(results, category)
            for category in self.total_aggregator.weights
        }
        secondary = {
            category: self.score_category(results, category) for category in self.secondary
        }
        total = self.total_aggregator.aggregate(categories.values())
        logger.debug(
            "Total %.1f over %s (weight %.2f)",
            total.value,
            [c.value for c in total.included],
            total.weight_sum,
        )
        return BenchmarkScores(
            categories=MappingProxyType(categories),
            total=total.value,
            secondary=MappingProxyType(secondary),
        )

