import logging
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait

from hr_warehouse.datamart.reports import REPORTS
from hr_warehouse.errors import ReportComputationError

logger = logging.getLogger(__name__)

OK = "ok"
FAILED = "failed"
CANCELLED = "cancelled"


class ReportResult:
    def __init__(self, name, status, dataset=None, error=None):
        self.name = name
        self.status = status
        self.dataset = dataset
        self.error = error

    @property
    def ok(self):
        return self.status == OK

    def __repr__(self):
        detail = f"{len(self.dataset)} rows" if self.dataset is not None else self.error
        return f"ReportResult({self.name!r}, {self.status}, {detail})"


def run_report(name, context, sink=None):
    """
    Computes one report and writes it to the sink. Any failure is raised
    as a ReportComputationError carrying the report name.
    """
    try:
        dataset = REPORTS[name](context)
    except Exception as e:
        raise ReportComputationError(name, e) from e

    if sink is not None:
        try:
            sink.write(dataset)
        except ReportComputationError:
            raise
        except Exception as e:
            raise ReportComputationError(name, e) from e
    return dataset


def run_reports(context, sink=None, workers=4, names=None, cancel=None):
    """
    Runs the reports on a bounded thread pool. Returns one ReportResult per
    report, in registry order. A failed report never affects the others;
    once cancel is set no further report is started.
    """
    names = list(names) if names is not None else list(REPORTS)
    unknown = [name for name in names if name not in REPORTS]
    if unknown:
        raise KeyError(f"Unknown reports: {', '.join(unknown)}")

    results = {}
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="report") as pool:
        pending = {}
        queue = list(names)

        def submit_next():
            while queue and len(pending) < workers:
                if cancel is not None and cancel.is_set():
                    return
                name = queue.pop(0)
                pending[pool.submit(run_report, name, context, sink)] = name

        submit_next()
        while pending:
            done, _ = wait(pending, return_when=FIRST_COMPLETED)
            for future in done:
                name = pending.pop(future)
                try:
                    dataset = future.result()
                    results[name] = ReportResult(name, OK, dataset=dataset)
                    logger.info(f"Report {name} produced ({len(dataset)} rows)")
                except ReportComputationError as e:
                    results[name] = ReportResult(name, FAILED, error=e)
                    logger.error(f"{e}")
            submit_next()

    for name in queue:
        results[name] = ReportResult(name, CANCELLED)
        logger.warning(f"Report {name} cancelled before it started")

    return [results[name] for name in names]
