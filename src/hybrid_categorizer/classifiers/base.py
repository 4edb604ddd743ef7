from abc import ABC, abstractmethod

from hybrid_categorizer.models import (
    CategorizeItem,
    CategoryResult,
    ClassificationResult,
    SimplifyItem,
)


class SimplifyResolver(ABC):
    @abstractmethod
    async def resolve(self, items: list[SimplifyItem]) -> dict[str, ClassificationResult]:
        """Label the items this resolver can handle; ids left out stay unresolved."""
        pass


class CategorizeResolver(ABC):
    @abstractmethod
    async def resolve(
        self, items: list[CategorizeItem], categories: list[str]
    ) -> dict[str, CategoryResult]:
        """Pick a category for the items this resolver can handle; ids left out stay unresolved."""
        pass
