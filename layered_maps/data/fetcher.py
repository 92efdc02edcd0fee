"""
Archive retrieval for vector datasets.

This module provides the ArchiveFetcher class for downloading a compressed
shapefile archive over HTTP(S) and unpacking it into local storage.
"""

import logging
import zipfile
from pathlib import Path
from typing import Optional, Union
from urllib.parse import unquote, urlparse

import requests

from ..config import Config
from ..exceptions import ExtractionError, NetworkError

logger = logging.getLogger("layered_maps.data")


def archive_name_from_url(url: str) -> str:
    """
    Derive a local file name for an archive from its URL.

    Example:
        >>> archive_name_from_url("https://example.org/data/london_sport.zip?dl=1")
        'london_sport.zip'
    """
    name = Path(unquote(urlparse(url).path)).name
    return name or "archive.zip"


class ArchiveFetcher:
    """
    Downloads and unpacks remote dataset archives.

    Downloads stream to a ``.part`` file that is renamed on completion, so an
    interrupted transfer never leaves a truncated archive under the final
    name. Checksums are not verified.

    Attributes:
        config: Configuration object (cache dir, timeout, chunk size)
        session: requests.Session used for all HTTP traffic

    Example:
        >>> fetcher = ArchiveFetcher(Config())
        >>> data_dir = fetcher.fetch(
        ...     "https://example.org/london_sport.zip", "data/london"
        ... )
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        session: Optional[requests.Session] = None
    ):
        self.config = config if config is not None else Config()
        self.session = session if session is not None else requests.Session()
        self.session.headers.update({"User-Agent": self.config.user_agent})

    def download(self, url: str, destination: Union[str, Path]) -> Path:
        """
        Retrieve ``url`` and persist its bytes at ``destination``.

        Args:
            url: HTTP(S) location of the archive
            destination: Local file path to write

        Returns:
            Path of the written file

        Raises:
            NetworkError: If the server is unreachable or answers with an error
            ExtractionError: If the file cannot be written at ``destination``
        """
        destination = Path(destination)
        partial = destination.with_name(destination.name + ".part")
        logger.info(f"Downloading {url} -> {destination}")

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ExtractionError(f"Cannot create download directory {destination.parent}: {e}") from e

        try:
            with self.session.get(url, stream=True, timeout=self.config.http_timeout) as response:
                response.raise_for_status()
                bytes_written = 0
                with open(partial, "wb") as f:
                    for chunk in response.iter_content(chunk_size=self.config.chunk_size):
                        if chunk:
                            f.write(chunk)
                            bytes_written += len(chunk)
            partial.replace(destination)
        except requests.RequestException as e:
            partial.unlink(missing_ok=True)
            raise NetworkError(f"Failed to download {url}: {e}") from e
        except OSError as e:
            partial.unlink(missing_ok=True)
            raise ExtractionError(f"Failed to write download to {destination}: {e}") from e

        logger.info(f"Downloaded {bytes_written / 1024:.1f} KB from {url}")
        return destination

    def extract(self, archive_path: Union[str, Path], target_dir: Union[str, Path]) -> Path:
        """
        Unpack a zip archive into ``target_dir``.

        Args:
            archive_path: Local zip file
            target_dir: Directory to extract into (created if missing)

        Returns:
            The target directory

        Raises:
            ExtractionError: If the archive is missing or corrupt, a member
                would land outside the target, or the target is unwritable
        """
        archive_path = Path(archive_path)
        target_dir = Path(target_dir)
        logger.info(f"Extracting {archive_path} -> {target_dir}")

        if not archive_path.is_file():
            raise ExtractionError(f"Archive not found: {archive_path}")

        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            root = target_dir.resolve()
            with zipfile.ZipFile(archive_path) as archive:
                bad_member = archive.testzip()
                if bad_member is not None:
                    raise ExtractionError(f"Corrupt member '{bad_member}' in {archive_path}")

                members = archive.namelist()
                for member in members:
                    member_path = (root / member).resolve()
                    if root != member_path and root not in member_path.parents:
                        raise ExtractionError(
                            f"Archive member '{member}' would extract outside {target_dir}"
                        )
                archive.extractall(root)
        except zipfile.BadZipFile as e:
            raise ExtractionError(f"Not a valid zip archive: {archive_path}: {e}") from e
        except OSError as e:
            raise ExtractionError(f"Cannot extract {archive_path} into {target_dir}: {e}") from e

        logger.info(f"Extracted {len(members)} files into {target_dir}")
        return target_dir

    def fetch(self, url: str, target_dir: Union[str, Path]) -> Path:
        """
        Download ``url`` into the cache directory and extract it.

        Every call downloads again; an earlier archive is overwritten.

        Returns:
            Directory holding the extracted files
        """
        archive_path = Path(self.config.cache_dir) / archive_name_from_url(url)
        self.download(url, archive_path)
        return self.extract(archive_path, target_dir)
