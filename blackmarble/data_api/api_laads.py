"""Black Marble granules from the NASA LAADS DAAC archive."""

# pylint:disable=W0718

from __future__ import annotations

import io
from pathlib import Path
from typing import List, Optional

import pandas as pd
import requests
from tqdm import tqdm

from blackmarble.core.errors import TileListingError
from blackmarble.data_api.api_abstract import TileArchiveAPI
from blackmarble.utils.bm_logger import get_logger, inform
from blackmarble.utils.config import Config

log = get_logger(__name__)


class LaadsArchiveAPI(TileArchiveAPI):
    """
    LAADS DAAC archive client.
    - Listing: {archive_url}/{collection}/{product}/{year}/{day}.csv
    - Granule: {archive_url}/{collection}/{product}/{year}/{day}/{name}
    Every request carries the Earthdata bearer token.
    """

    def __init__(
                    self,
                    bearer: str,
                    config: Optional[Config] = None,
                    session: Optional[requests.Session] = None,
                    name: str = "laads-daac",
                ):
        super().__init__(name=name, bearer=bearer, config=config, session=session)

    # --------------------------------------------------------------------
    # Public API
    # --------------------------------------------------------------------
    def listing(self, product_id: str, year: str, day: str) -> pd.DataFrame:
        url = self.config.listing_url(product_id, year, day)
        try:
            r = self._get(url)
            df = pd.read_csv(io.StringIO(r.text))
        except (requests.RequestException, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise TileListingError(f"Listing unavailable for {product_id} {year}/{day}: {e}") from e

        if "name" not in df.columns:
            raise TileListingError(f"Listing for {product_id} {year}/{day} has no 'name' column")
        return df

    def download(self, product_id: str, year: str, day: str, names: List[str], dest_dir: Path,
                 quiet: bool = False) -> List[Path]:
        """
        Download each granule; a failing granule is logged and left out of the
        result without affecting the others. Files already present are reused.
        """
        dest_dir = Path(dest_dir)
        dest_dir.mkdir(parents=True, exist_ok=True)
        paths: List[Path] = []
        for name in names:
            out_path = dest_dir / name
            if out_path.exists() and out_path.stat().st_size > 0:
                paths.append(out_path)
                continue
            url = self.config.file_url(product_id, year, day, name)
            try:
                self._download_file(url, out_path, quiet=quiet)
                paths.append(out_path)
            except (requests.RequestException, OSError) as e:
                out_path.unlink(missing_ok=True)
                log.warning("Failed to download %s: %s", name, e)
        return paths

    # --------------------------------------------------------------------
    # Internal functions
    # --------------------------------------------------------------------
    def _download_file(self, url: str, destination: Path, quiet: bool = False) -> None:
        inform(log, quiet, "Downloading %s", destination.name)
        with self._get(url, stream=True) as response:
            total_length = response.headers.get("Content-Length")
            total = int(total_length) if total_length and total_length.isdigit() else None
            with tqdm(total=total, desc=destination.name, unit="B", unit_scale=True,
                      disable=quiet, leave=False) as progress:
                with destination.open("wb") as fh:
                    for chunk in response.iter_content(chunk_size=self.config.chunk_size):
                        if not chunk:
                            continue
                        fh.write(chunk)
                        progress.update(len(chunk))
