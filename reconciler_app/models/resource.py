from sqlalchemy import Boolean, Column, DateTime, Integer, String

from reconciler_app.database.connection import Base


class Resource(Base):
    """
    Resource record in the primary (authoritative) store.

    Rows are created and edited by the administrative system. The
    reconciler only ever writes short_url and updated_at.

    short_url is denormalized: it must equal base_url + "/" + prefix + id
    once reconciled, and can be NULL before the first pass.
    """
    __tablename__ = "ol_resource"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(512), nullable=False, default="")
    resource_url = Column(String(1024), nullable=False, default="")
    short_url = Column(String(255), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    # "primary" is a reserved word in MySQL; SQLAlchemy quotes it for us
    primary = Column("primary", Boolean, nullable=False, default=True)
    updated_at = Column(DateTime, nullable=False, index=True)
