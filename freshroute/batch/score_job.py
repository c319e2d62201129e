"""Entry point for the batch route scoring job."""

from __future__ import annotations

import argparse
import logging

from pyspark.sql import SparkSession

from freshroute.common.config import load_config
from freshroute.ingest.ingestion_service import RouteIngestionService
from freshroute.ingest.rdd_builder import RouteRDDBuilder
from freshroute.batch.persistence import ScoreTableWriter
from freshroute.batch.spark_scorer import SparkOverlapScorer, enforce_batch_limits


def main() -> None:
    parser = argparse.ArgumentParser(description="Score saved routes against recent activity.")
    parser.add_argument("--config", default="config/local.yaml", help="Path to YAML config.")
    parser.add_argument("--log-level", default="INFO", help="Python logging level.")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = load_config(args.config)

    spark = (
        SparkSession.builder.appName(config.spark.app_name)
        .master(config.spark.master)
        .config("spark.sql.shuffle.partitions", str(config.spark.shuffle_partitions))
        .getOrCreate()
    )

    try:
        ingestion = RouteIngestionService(
            spark,
            recent_path=config.dataset.recent_path,
            saved_path=config.dataset.saved_path,
            limit=config.dataset.limit,
        )
        recent_rdd = RouteRDDBuilder.build_routes(ingestion.load_recent(), folder="recent")
        saved_rdd = RouteRDDBuilder.build_routes(ingestion.load_saved(), folder="saved")
        if saved_rdd.isEmpty():
            raise RuntimeError("No saved routes available. Check dataset paths.")
        enforce_batch_limits(
            saved_rdd,
            max_routes=config.batch.max_routes,
            max_points=config.batch.max_points,
        )

        grid_config = config.grid_config()
        scorer = SparkOverlapScorer(
            spark,
            grid_config,
            zero_coverage=config.scoring.zero_coverage,
        )
        tables = scorer.run(recent_rdd, saved_rdd)
        writer = ScoreTableWriter(config.output.base_path, grid_config)
        writer.write(tables)
        print(f"Wrote scoring tables to {writer.target_root}")
    finally:
        spark.stop()


if __name__ == "__main__":
    main()
