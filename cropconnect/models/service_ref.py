from cropconnect.errors import ValidationError
from cropconnect.extensions import db
from cropconnect.models.tractor_listing import TractorListing
from cropconnect.models.worker_listing import WorkerListing

SERVICE_TYPES = ("tractor", "worker")


class ServiceRef:
    """Tagged pointer to the listing behind a booking: Tractor(id) or Worker(id).

    ``id`` may be None for worker bookings that came from a requirement
    application rather than a standing listing.
    """

    MODELS = {"tractor": TractorListing, "worker": WorkerListing}

    __slots__ = ("kind", "id")

    def __init__(self, kind, id=None):
        if kind not in self.MODELS:
            raise ValidationError("Service type must be 'tractor' or 'worker'.")
        self.kind = kind
        try:
            self.id = int(id) if id is not None else None
        except (TypeError, ValueError) as exc:
            raise ValidationError("Service id must be a number.") from exc

    @classmethod
    def tractor(cls, id):
        return cls("tractor", id)

    @classmethod
    def worker(cls, id):
        return cls("worker", id)

    @property
    def model(self):
        return self.MODELS[self.kind]

    def resolve(self):
        if self.id is None:
            return None
        return db.session.get(self.model, self.id)

    def __eq__(self, other):
        return isinstance(other, ServiceRef) and (self.kind, self.id) == (other.kind, other.id)

    def __hash__(self):
        return hash((self.kind, self.id))

    def __repr__(self):
        return f"{self.kind.title()}({self.id})"
