from types import MappingProxyType
from typing import Iterable, Iterator, List, Optional

from .errors import ImageNotFound
from .models import Image


class ImageRegistry:
    """Read-only index of every image in one inventory snapshot.

    Parent links are plain ids into the same table, so walking a lineage is a
    series of dictionary lookups. An id that points outside the snapshot ends
    the walk as if the root had been reached.
    """

    def __init__(self, images: Iterable[Image]):
        self._images = MappingProxyType({image.id: image for image in images})

    def __len__(self) -> int:
        return len(self._images)

    def __contains__(self, image_id) -> bool:
        return image_id in self._images

    def __iter__(self) -> Iterator[Image]:
        return iter(self._images.values())

    def lookup(self, image_id: str) -> Image:
        try:
            return self._images[image_id]
        except KeyError:
            raise ImageNotFound(image_id) from None

    def get(self, image_id: str) -> Optional[Image]:
        return self._images.get(image_id)

    def all(self) -> List[Image]:
        return list(self._images.values())

    def leaves(self) -> List[Image]:
        """Images from the top-level listing, i.e. not intermediate layers."""
        return [image for image in self._images.values() if image.top_level]

    def parent_of(self, image: Image) -> Optional[Image]:
        if not image.parent_id:
            return None
        return self._images.get(image.parent_id)

    def ancestors(self, image_id: str) -> Iterator[Image]:
        """Yield the ancestors of ``image_id`` from its parent up to the root."""
        image = self._images.get(image_id)
        while image is not None:
            image = self.parent_of(image)
            if image is not None:
                yield image
