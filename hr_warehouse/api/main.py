from fastapi import Depends, FastAPI, HTTPException, Query
from sqlalchemy import MetaData, Table, inspect, select
from sqlalchemy.orm import Session

from hr_warehouse.datamart.reports import REPORTS
from hr_warehouse.datamart.sinks import table_name_for

from .db import get_engine, get_session_factory


def create_app(engine=None, table_prefix="rpt_"):
    """
    Read-only API over the reports exported by the sql sink.
    """
    engine = engine or get_engine()
    SessionLocal = get_session_factory(engine)
    app = FastAPI(title="hr_warehouse reports")

    def get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    def exported_reports():
        tables = set(inspect(engine).get_table_names())
        return [name for name in REPORTS if table_name_for(name, table_prefix) in tables]

    @app.get("/reports", tags=["reports"])
    def list_reports():
        return exported_reports()

    @app.get("/reports/{name}", tags=["reports"])
    def report_contents(name: str, page: int = Query(0, ge=0), limit: int = Query(50, ge=1, le=1000),
                        db: Session = Depends(get_db)):
        if name not in exported_reports():
            raise HTTPException(status_code=404, detail=f"Report {name} not found")
        table = Table(table_name_for(name, table_prefix), MetaData(), autoload_with=engine)
        # offset paging needs a total order
        query = select(table).order_by(*table.columns).offset(page * limit).limit(limit)
        results = db.execute(query).all()
        return [dict(row._mapping) for row in results]

    return app
