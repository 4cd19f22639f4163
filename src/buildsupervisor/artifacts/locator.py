"""
Artifact lookup for finished build jobs.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Union

from ..models.config import DEFAULT_ARTIFACT_EXTENSIONS
from ..models.job import Artifact, BuildType
from ..validation import ArtifactNotFoundError, ErrorSeverity, handle_error

logger = logging.getLogger(__name__)


class ArtifactLocator:
    """
    Finds the file a build job left in its output directory.

    A file matches when its name contains the build id and ends with the
    extension mapped to the job's build type. Only the top level of the
    output directory is scanned.
    """

    def __init__(self, extensions: Optional[Dict[str, str]] = None):
        self.extensions = dict(extensions or DEFAULT_ARTIFACT_EXTENSIONS)

    def extension_for(self, build_type: Union[BuildType, str]) -> str:
        key = build_type.value if isinstance(build_type, BuildType) else build_type
        return self.extensions[key]

    def find(
        self,
        output_path: Union[str, Path],
        build_id: str,
        build_type: Union[BuildType, str],
    ) -> Optional[Artifact]:
        """
        Scan ``output_path`` for the artifact of one build.

        When several files match, the most recently modified one is returned;
        equal modification times fall back to name order.

        Returns:
            The artifact, or None if no file matches or the directory is gone
        """
        extension = self.extension_for(build_type)
        output_dir = Path(output_path)

        candidates = []
        try:
            for entry in output_dir.iterdir():
                name = entry.name
                if build_id not in name or not name.lower().endswith(extension):
                    continue
                if not entry.is_file():
                    continue
                stat = entry.stat()
                candidates.append((-stat.st_mtime, name, entry, stat.st_size))
        except FileNotFoundError:
            logger.warning(f"Output directory for build {build_id} does not exist: {output_dir}")
            return None
        except OSError as e:
            handle_error(
                error=e,
                context=f"scanning output directory {output_dir} for build {build_id}",
                severity=ErrorSeverity.ERROR,
                reraise=False,
                logger=logger,
            )
            return None

        if not candidates:
            return None

        candidates.sort()
        _, name, path, size = candidates[0]
        if len(candidates) > 1:
            logger.info(f"Build {build_id} left {len(candidates)} matching files, using {name}")
        return Artifact(path=path, size_bytes=size)

    def locate(
        self,
        output_path: Union[str, Path],
        build_id: str,
        build_type: Union[BuildType, str],
    ) -> Artifact:
        """
        Like ``find`` but a missing artifact is an error.

        Raises:
            ArtifactNotFoundError: If no file matches
        """
        artifact = self.find(output_path, build_id, build_type)
        if artifact is None:
            raise ArtifactNotFoundError(build_id=build_id)
        return artifact
