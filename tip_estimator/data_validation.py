import logging
import pandas as pd
import great_expectations as gx
import great_expectations.expectations as gxe
from great_expectations.core.expectation_suite import ExpectationSuite
import tip_estimator.data_contract as dc

logger = logging.getLogger(__name__)

class AggregateValidator:
    """Quality gate run on the aggregate table before it is published."""

    def __init__(self, df: pd.DataFrame):
        self.df = df
        # Ephemeral Context: In-memory configuration suitable for automated pipelines.
        self.context = gx.get_context(mode="ephemeral")
        self.datasource_name = "pandas_datasource"
        self.asset_name = "aggregate_dataframe"
        self.suite_name = "aggregate_quality_suite"
        self.validation_results = None

    def build_suite(self) -> ExpectationSuite:
        suite = ExpectationSuite(name=self.suite_name)

        # --- Rule A: Structural Integrity ---
        suite.add_expectation(gxe.ExpectTableRowCountToBeBetween(min_value=1))
        for col in dc.AGGREGATE_COLUMNS:
            suite.add_expectation(gxe.ExpectColumnToExist(column=col))
        suite.add_expectation(gxe.ExpectCompoundColumnsToBeUnique(column_list=dc.GROUP_KEYS))

        # --- Rule B: Bucket Domains ---
        suite.add_expectation(
            gxe.ExpectColumnValuesToBeInSet(column="day_of_week", value_set=dc.DAYS_OF_WEEK)
        )
        suite.add_expectation(
            gxe.ExpectColumnValuesToBeInSet(column="period", value_set=dc.TIME_PERIODS)
        )
        suite.add_expectation(
            gxe.ExpectColumnValuesToNotBeInSet(column=dc.BOROUGH_COLUMN, value_set=dc.EXCLUDED_BOROUGHS)
        )

        # --- Rule C: Aggregates ---
        suite.add_expectation(gxe.ExpectColumnValuesToBeBetween(column="total_rides", min_value=1))
        suite.add_expectation(gxe.ExpectColumnValuesToBeBetween(column="avg_fare", min_value=0.0))
        suite.add_expectation(gxe.ExpectColumnValuesToNotBeNull(column="avg_tip"))

        return suite

    def validate(self) -> bool:
        logger.info("Validating aggregate table with Great Expectations...")

        # Setup Datasource (Idempotent)
        try:
            ds = self.context.data_sources.get(self.datasource_name)
        except (KeyError, ValueError):
            ds = self.context.data_sources.add_pandas(self.datasource_name)

        try:
            asset = ds.get_asset(self.asset_name)
        except LookupError:
            asset = ds.add_dataframe_asset(name=self.asset_name)

        try:
            batch_def = asset.get_batch_definition("whole_df")
        except KeyError:
            batch_def = asset.add_batch_definition_whole_dataframe("whole_df")

        batch = batch_def.get_batch(batch_parameters={"dataframe": self.df})
        self.validation_results = batch.validate(self.build_suite())

        if not self.validation_results.success:
            logger.error("GX VALIDATION FAILED!")
            for res in self.validation_results.results:
                if not res.success:
                    col = res.expectation_config.kwargs.get("column", "Table-Level")
                    type_ = res.expectation_config.type
                    logger.error(f"   - Violation: {col} | Rule: {type_}")

            raise ValueError("Aggregate table failed validation. Nothing was published.")

        logger.info("Great Expectations passed.")
        return True
