"""
Build image provisioning.

Ensures the container image used for builds exists locally, building it
from its definition on demand.
"""

import asyncio
import logging
from typing import Optional

from ..executor.container import ContainerRuntime
from ..models.config import ContainerConfig
from ..validation import ProvisioningError

logger = logging.getLogger(__name__)


class ImageProvisioner:
    """
    Checks for and builds the build container image.

    A confirmed image is remembered for the provisioner's lifetime, so only
    the first build pays for the check. Concurrent ``ensure_image`` calls
    share a single image build.
    """

    def __init__(self, runtime: ContainerRuntime, config: Optional[ContainerConfig] = None):
        self.runtime = runtime
        self.config = config or runtime.config
        self._image_confirmed = False
        self._lock = asyncio.Lock()

    @property
    def image(self) -> str:
        return self.config.image

    async def check_image_available(self) -> bool:
        """
        Check whether the build image is present locally.

        Returns:
            True if an image with the expected ``repository:tag`` exists
        """
        images = await self.runtime.list_images()
        available = self.image in images
        if available:
            logger.debug(f"Build image {self.image} is available")
        else:
            logger.info(f"Build image {self.image} not found among {len(images)} local images")
        return available

    async def build_image(self) -> None:
        """
        Build the image from its Dockerfile, streaming output to the log.

        Raises:
            ProvisioningError: If the runtime is unavailable or the build fails
        """
        logger.info(f"Building image {self.image} from {self.config.dockerfile}")

        try:
            exit_code = await self.runtime.build_image(
                tag=self.image,
                dockerfile=str(self.config.dockerfile),
                context=str(self.config.build_context),
                on_line=lambda line: logger.info(f"Image build: {line}"),
            )
        except OSError as e:
            raise ProvisioningError(f"Image build could not start: {type(e).__name__}: {e}") from e

        if exit_code != 0:
            raise ProvisioningError(f"Image build failed with code {exit_code}")

        self._image_confirmed = True
        logger.info(f"Image {self.image} built successfully")

    async def ensure_image(self) -> None:
        """
        Make sure the image exists, building it when allowed.

        Raises:
            ProvisioningError: If the image is missing and cannot be built
        """
        if self._image_confirmed:
            return

        async with self._lock:
            # Another caller may have provisioned it while we waited
            if self._image_confirmed:
                return

            if await self.check_image_available():
                self._image_confirmed = True
                return

            if not self.config.auto_build_image:
                raise ProvisioningError(
                    f"Build image {self.image} is not available and automatic image builds are disabled"
                )

            logger.info(f"Build image {self.image} not found, building it now...")
            await self.build_image()
