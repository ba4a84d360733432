"""
Layer Storage

Holds the committed tables of each refinement layer. A commit replaces the
whole table; when parquet persistence is on, the file is written to a
temporary path and moved into place so readers never see a partial table.
"""

from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import polars as pl
import structlog

from sales_warehouse.config import get_settings

logger = structlog.get_logger(__name__)


class Layer(str, Enum):
    """Refinement layers"""
    SILVER = "silver"
    GOLD = "gold"


class LayerStore:
    """
    In-memory catalogue of committed tables, optionally mirrored to parquet.

    Example:
        store = LayerStore()
        store.commit(Layer.SILVER, "crm_cust_info", df)
        store.get(Layer.SILVER, "crm_cust_info")
    """

    def __init__(
        self,
        output_path: Optional[Union[str, Path]] = None,
        write_parquet: Optional[bool] = None,
    ):
        paths = get_settings().paths
        self.output_path = Path(output_path or paths.output_path)
        self.write_parquet = paths.write_parquet if write_parquet is None else write_parquet
        self._tables: Dict[Tuple[Layer, str], pl.DataFrame] = {}

    def path_for(self, layer: Layer, name: str) -> Path:
        return self.output_path / Layer(layer).value / f"{name}.parquet"

    def _write_output(self, layer: Layer, name: str, df: pl.DataFrame) -> Path:
        """Write a table to its layer directory, replacing the previous file"""
        target = self.path_for(layer, name)
        target.parent.mkdir(parents=True, exist_ok=True)
        staging = target.with_suffix(".parquet.tmp")

        df.write_parquet(staging)
        staging.replace(target)
        logger.info(f"Written {len(df)} rows to {target}")
        return target

    def commit(self, layer: Layer, name: str, df: pl.DataFrame) -> None:
        """Replace a table; nothing is changed if persisting fails"""
        layer = Layer(layer)
        if self.write_parquet:
            self._write_output(layer, name, df)
        self._tables[(layer, name)] = df

    def get(self, layer: Layer, name: str) -> pl.DataFrame:
        try:
            return self._tables[(Layer(layer), name)]
        except KeyError:
            raise KeyError(f"Table '{Layer(layer).value}.{name}' has not been committed") from None

    def has(self, layer: Layer, name: str) -> bool:
        return (Layer(layer), name) in self._tables

    def tables(self, layer: Layer) -> Dict[str, pl.DataFrame]:
        layer = Layer(layer)
        return {name: df for (lyr, name), df in self._tables.items() if lyr == layer}

    def names(self, layer: Layer) -> List[str]:
        return sorted(self.tables(layer))

    def clear(self, layer: Optional[Layer] = None) -> None:
        if layer is None:
            self._tables.clear()
            return
        layer = Layer(layer)
        for key in [k for k in self._tables if k[0] == layer]:
            del self._tables[key]
