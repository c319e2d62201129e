"""Load route dumps into Spark DataFrames."""

from __future__ import annotations

from typing import Optional

from pyspark.sql import DataFrame, SparkSession
from pyspark.sql import functions as F
from pyspark.sql import types as T

ROUTE_SCHEMA = T.StructType(
    [
        T.StructField("id", T.StringType(), True),
        T.StructField("name", T.StringType(), True),
        T.StructField("points", T.ArrayType(T.ArrayType(T.DoubleType(), True), True), True),
        T.StructField("error", T.StringType(), True),
    ]
)


class RouteIngestionService:
    """Reads newline-delimited JSON routes for the recent and saved folders.

    Each line looks like ``{"id": "...", "name": "...", "points": [[lat, lon, ele], ...]}``;
    elevation is optional. GPX parsing happens upstream of this service.
    """

    def __init__(
        self,
        spark: SparkSession,
        recent_path: str,
        saved_path: str,
        limit: Optional[int] = None,
    ) -> None:
        self.spark = spark
        self.recent_path = recent_path
        self.saved_path = saved_path
        self.limit = limit

    def load_recent(self) -> DataFrame:
        return self._load(self.recent_path)

    def load_saved(self) -> DataFrame:
        return self._load(self.saved_path)

    def _load(self, path: str) -> DataFrame:
        df = self.spark.read.schema(ROUTE_SCHEMA).json(path)
        cleaned = self.clean_routes(df)
        if self.limit:
            cleaned = cleaned.limit(self.limit)
        return cleaned

    @staticmethod
    def clean_routes(df: DataFrame) -> DataFrame:
        """Drop rows without an id and order by id for deterministic replay."""

        return (
            df.select("id", "name", "points", "error")
            .dropna(subset=("id",))
            .withColumn("name", F.coalesce(F.col("name"), F.col("id")))
            .orderBy("id")
        )

    @staticmethod
    def route_schema() -> T.StructType:
        return ROUTE_SCHEMA
