from cropconnect.extensions import db
from cropconnect.models.base import LocationMixin, PKType, TimestampMixin, utcnow

WORKER_WORK_TYPES = ("Farm Labor", "Harvester", "Irrigator", "Sprayer", "General Helper", "Other")
PREFERRED_GENDERS = ("any", "male", "female", "other")
APPLICANT_STATUSES = ("pending", "accepted", "rejected")


class WorkerRequirement(LocationMixin, TimestampMixin, db.Model):
    __tablename__ = "worker_requirements"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    farmer_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    work_type = db.Column(db.String(32), nullable=False, default="Farm Labor", index=True)
    min_age = db.Column(db.Integer, nullable=False, default=18)
    max_age = db.Column(db.Integer, nullable=False, default=65)
    preferred_gender = db.Column(db.String(12), nullable=False, default="any")
    min_experience = db.Column(db.Integer, nullable=False, default=0)
    wages_offered = db.Column(db.Numeric(10, 2), nullable=False)
    work_duration = db.Column(db.String(40), nullable=False)
    food_provided = db.Column(db.Boolean, nullable=False, default=False)
    transportation_provided = db.Column(db.Boolean, nullable=False, default=False)
    start_date = db.Column(db.DateTime(timezone=True), nullable=False)
    end_date = db.Column(db.DateTime(timezone=True), nullable=True)
    full_address = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.String(500), nullable=True)

    status = db.Column(db.String(24), nullable=False, default="open", index=True)
    accepted_by_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    accepted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    farmer = db.relationship("User", foreign_keys=[farmer_id])
    accepted_by = db.relationship("User", foreign_keys=[accepted_by_id])
    applicants = db.relationship(
        "WorkerApplicant",
        back_populates="requirement",
        cascade="all, delete-orphan",
        order_by="WorkerApplicant.applied_at",
    )

    __table_args__ = (
        db.Index("ix_worker_requirements_farmer_status", "farmer_id", "status"),
        db.CheckConstraint("wages_offered >= 0", name="ck_worker_requirement_wages"),
        db.CheckConstraint("min_experience >= 0", name="ck_worker_requirement_experience"),
    )

    kind = "worker"

    def applicant_for(self, worker_id):
        return next((row for row in self.applicants if row.worker_id == worker_id), None)

    def accepts_gender(self, gender):
        return self.preferred_gender == "any" or self.preferred_gender == (gender or "").lower()


class WorkerApplicant(db.Model):
    __tablename__ = "worker_applicants"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    requirement_id = db.Column(
        PKType, db.ForeignKey("worker_requirements.id", ondelete="CASCADE"), nullable=False, index=True
    )
    worker_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="pending")
    applied_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    hire_request_id = db.Column(PKType, db.ForeignKey("hire_requests.id", ondelete="SET NULL"), nullable=True)

    requirement = db.relationship("WorkerRequirement", back_populates="applicants")
    worker = db.relationship("User")
    hire_request = db.relationship("HireRequest", foreign_keys=[hire_request_id])

    __table_args__ = (
        db.UniqueConstraint("requirement_id", "worker_id", name="uq_worker_applicant"),
    )
