import logging
from src.extensions import db
from src.exceptions import BillingException, PartialFailureException, StoreException

logger = logging.getLogger(__name__)


class Saga:
    """
    Ordered forward steps, each committed on its own, with an optional
    compensation per step. When a step fails, compensations of the steps
    that already committed run in reverse order.

    The store is not asked for a multi-row transaction here: every step is
    visible to other readers as soon as it commits.
    """

    def __init__(self, name):
        self.name = name
        self._steps = []
        self.results = {}

    def step(self, name, action, compensation=None):
        self._steps.append((name, action, compensation))
        return self

    def run(self):
        committed = []
        for name, action, compensation in self._steps:
            try:
                self.results[name] = action()
                db.session.commit()
            except Exception as e:
                db.session.rollback()
                logger.error("%s: step '%s' failed: %s", self.name, name, e)
                self._compensate(committed, name, e)
            committed.append((name, compensation))
        return self.results

    def _compensate(self, committed, failed_step, error):
        compensation_errors = []
        for name, compensation in reversed(committed):
            if compensation is None:
                continue
            try:
                compensation()
                db.session.commit()
                logger.warning("%s: compensated step '%s'", self.name, name)
            except Exception as comp_err:
                db.session.rollback()
                logger.error("%s: compensation for '%s' failed: %s", self.name, name, comp_err)
                compensation_errors.append(comp_err)

        if compensation_errors:
            raise PartialFailureException(
                f"{self.name} failed at '{failed_step}' and could not be undone: {error}",
                original_error=error,
                compensation_errors=compensation_errors,
            ) from error
        if isinstance(error, BillingException):
            raise error
        raise StoreException(f"{self.name} failed at '{failed_step}'") from error
