from sqlalchemy import Column, Float, ForeignKey, Integer, MetaData, Table, Text, UniqueConstraint

# Keep names lowercase to avoid quoted identifiers in Postgres.
metadata = MetaData()


companies = Table(
    "companies",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("ticker", Text, nullable=False),
    Column("name", Text, nullable=False),
    Column("sector", Text, nullable=False, server_default="Unknown"),
    Column("industry", Text, nullable=False, server_default="Unknown"),
    Column("market_cap", Float, nullable=False, server_default="0"),
    Column("market_cap_bucket", Text, nullable=False, server_default="Unknown"),
    UniqueConstraint("ticker", name="uq_companies_ticker"),
)


years = Table(
    "years",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("year", Integer, nullable=False),
    UniqueConstraint("year", name="uq_years_year"),
)


factors = Table(
    "factors",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", Text, nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("weight", Float, nullable=False),
    Column("display_order", Integer, nullable=False),
    UniqueConstraint("name", name="uq_factors_name"),
)


parameters = Table(
    "parameters",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("factor_id", Integer, ForeignKey("factors.id", ondelete="CASCADE"), nullable=False),
    Column("name", Text, nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("normalization_method", Text, nullable=False),
    Column("display_order", Integer, nullable=False),
)


factor_scores = Table(
    "factor_scores",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("company_id", Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
    Column("factor_id", Integer, ForeignKey("factors.id", ondelete="CASCADE"), nullable=False),
    Column("year_id", Integer, ForeignKey("years.id", ondelete="CASCADE"), nullable=False),
    Column("score", Float, nullable=False),
    UniqueConstraint("company_id", "factor_id", "year_id", name="uq_factor_scores_company_factor_year"),
)


parameter_scores = Table(
    "parameter_scores",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("company_id", Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
    Column("parameter_id", Integer, ForeignKey("parameters.id", ondelete="CASCADE"), nullable=False),
    Column("year_id", Integer, ForeignKey("years.id", ondelete="CASCADE"), nullable=False),
    Column("raw_value", Float),
    Column("normalized_value", Float),
    UniqueConstraint("company_id", "parameter_id", "year_id", name="uq_parameter_scores_company_parameter_year"),
)


final_scores = Table(
    "final_scores",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("company_id", Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
    Column("year_id", Integer, ForeignKey("years.id", ondelete="CASCADE"), nullable=False),
    Column("final_score", Float, nullable=False),
    UniqueConstraint("company_id", "year_id", name="uq_final_scores_company_year"),
)
