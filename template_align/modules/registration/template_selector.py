"""
Best-template selection.

Every template is aligned to the same target independently; the template with
the strictly lowest fitness wins and ties keep the earlier template. A template
that cannot be aligned scores infinity; selection fails only when no template
can be aligned.
"""
import asyncio
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from template_align.core.errors import AlignmentFailure, EmptyRegistryError
from template_align.core.logging_config import get_logger
from template_align.modules.cloud.io import load_point_cloud, read_template_list
from template_align.modules.features import DescriptorExtractor, FeatureCloud
from .sample_consensus import AlignmentResult, SampleConsensusAlignment

logger = get_logger(__name__)

# Stand-in result for a template that could not be aligned
FAILED_RESULT = AlignmentResult(
    fitness_score=float("inf"),
    transformation=np.eye(4),
    inlier_ratio=0.0,
    iterations=0,
    valid_samples=0
)


class TemplateRegistry:
    """Ordered collection of template feature clouds; order breaks ties."""

    def __init__(self, templates: Optional[Iterable[FeatureCloud]] = None):
        self._templates: List[FeatureCloud] = list(templates or [])

    def add(self, template: FeatureCloud) -> int:
        """Append a template and return its index."""
        self._templates.append(template)
        return len(self._templates) - 1

    def __len__(self) -> int:
        return len(self._templates)

    def __iter__(self) -> Iterator[FeatureCloud]:
        return iter(self._templates)

    def __getitem__(self, index: int) -> FeatureCloud:
        return self._templates[index]

    @classmethod
    def from_list_file(cls, path: str, extractor: DescriptorExtractor) -> "TemplateRegistry":
        """
        Load every template named in a template list file, in file order.

        Raises:
            LoadError: the list or any listed cloud cannot be loaded
        """
        registry = cls()
        for template_path in read_template_list(path):
            cloud = load_point_cloud(template_path)
            registry.add(extractor.extract(cloud, name=template_path))
        logger.info(f"Loaded {len(registry)} templates from {path}")
        return registry


def reduce_best(results: Sequence[AlignmentResult]) -> Tuple[int, AlignmentResult]:
    """Index and result of the strictly lowest fitness; the first one wins ties."""
    if not results:
        raise EmptyRegistryError("No alignment results to choose from")

    best_index = 0
    lowest_score = results[0].fitness_score
    for i, result in enumerate(results[1:], start=1):
        if result.fitness_score < lowest_score:
            lowest_score = result.fitness_score
            best_index = i
    return best_index, results[best_index]


class TemplateSelector:
    """
    Aligns a target against every template and picks the best fit.

    Each template gets its own random generator, seeded from the selector's
    generator in registry order before any alignment runs. Results therefore
    do not depend on whether templates are aligned sequentially or concurrently.

    Args:
        config: alignment configuration passed to SampleConsensusAlignment;
            "seed" seeds the selector's generator
        rng: selector random generator; overrides the seed when given
        aligner_factory: builds an aligner (anything with align(target, source))
            from a per-template generator
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        rng: Optional[np.random.Generator] = None,
        aligner_factory: Optional[Callable[[np.random.Generator], Any]] = None
    ):
        self.config = config or {}
        self.rng = rng if rng is not None else np.random.default_rng(self.config.get("seed"))
        self.aligner_factory = aligner_factory or self._default_aligner

    def _default_aligner(self, rng: np.random.Generator) -> SampleConsensusAlignment:
        return SampleConsensusAlignment(self.config, rng=rng)

    def _aligners(self, count: int) -> List[Any]:
        seeds = self.rng.integers(0, np.iinfo(np.int64).max, size=count)
        return [self.aligner_factory(np.random.default_rng(int(seed))) for seed in seeds]

    @staticmethod
    def _align_one(aligner, target: FeatureCloud, template: FeatureCloud) -> Optional[AlignmentResult]:
        try:
            return aligner.align(target, template)
        except AlignmentFailure as e:
            logger.warning(f"Template {template.name or '<unnamed>'} could not be aligned: {e}")
            return None

    @staticmethod
    def _reduce(results: Sequence[Optional[AlignmentResult]]) -> Tuple[int, AlignmentResult]:
        if all(result is None for result in results):
            raise AlignmentFailure(f"None of the {len(results)} templates could be aligned")

        index, result = reduce_best([FAILED_RESULT if r is None else r for r in results])
        logger.info(f"Best template #{index} with fitness {result.fitness_score:.6g}")
        return index, result

    def align_all(self, target: FeatureCloud, templates: Sequence[FeatureCloud]) -> List[AlignmentResult]:
        """
        Align every template to the target, in registry order.

        A template that cannot be aligned gets FAILED_RESULT (infinite fitness).
        """
        aligners = self._aligners(len(templates))
        results = [self._align_one(aligner, target, template) for aligner, template in zip(aligners, templates)]
        return [FAILED_RESULT if r is None else r for r in results]

    def select_best(self, target: FeatureCloud, templates: Sequence[FeatureCloud]) -> Tuple[int, AlignmentResult]:
        """
        Raises:
            EmptyRegistryError: no templates given
            AlignmentFailure: no template could be aligned at all
        """
        if len(templates) == 0:
            raise EmptyRegistryError("Template registry is empty")

        aligners = self._aligners(len(templates))
        return self._reduce([
            self._align_one(aligner, target, template)
            for aligner, template in zip(aligners, templates)
        ])

    async def select_best_async(
        self,
        target: FeatureCloud,
        templates: Sequence[FeatureCloud]
    ) -> Tuple[int, AlignmentResult]:
        """Same as select_best with the alignments running in worker threads."""
        if len(templates) == 0:
            raise EmptyRegistryError("Template registry is empty")

        aligners = self._aligners(len(templates))
        results = await asyncio.gather(*[
            asyncio.to_thread(self._align_one, aligner, target, template)
            for aligner, template in zip(aligners, templates)
        ])
        return self._reduce(results)


def select_best(
    target: FeatureCloud,
    templates: Sequence[FeatureCloud],
    config: Optional[Dict[str, Any]] = None
) -> Tuple[int, AlignmentResult]:
    """Functional shortcut for TemplateSelector(config).select_best(target, templates)."""
    return TemplateSelector(config).select_best(target, templates)
