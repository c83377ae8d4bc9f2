class ToursError(Exception):
    """Base class for errors raised by the tours backend."""


class ConfigError(ToursError):
    pass


class InvalidIdError(ToursError):
    def __init__(self, value: str):
        super().__init__(f"Invalid id: {value!r}")
        self.value = value


class TourNotFoundError(ToursError):
    def __init__(self, tour_id: str):
        super().__init__(f"No tour found with id {tour_id}")
        self.tour_id = tour_id


class ValidationFailedError(ToursError):
    pass


class PlanAlreadyMaterializedError(ToursError, RuntimeError):
    """A query plan was executed a second time."""


class DuplicateTourError(ToursError):
    pass
