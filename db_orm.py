from sqlalchemy.orm import declarative_base

import db_models

Base = declarative_base(metadata=db_models.metadata)

class Companies(Base):
    __table__ = db_models.companies

class Years(Base):
    __table__ = db_models.years

class Factors(Base):
    __table__ = db_models.factors

class Parameters(Base):
    __table__ = db_models.parameters

class FactorScores(Base):
    __table__ = db_models.factor_scores

class ParameterScores(Base):
    __table__ = db_models.parameter_scores

class FinalScores(Base):
    __table__ = db_models.final_scores
