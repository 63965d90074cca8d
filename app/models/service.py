from sqlmodel import Field, SQLModel


class Service(SQLModel, table=True):
    """A grooming/bath service offered by the shop."""

    __tablename__ = "services"
    id: int | None = Field(default=None, primary_key=True)
    name: str
    description: str | None = None
    duration_min: int = 60
    base_price: float = 0.0
    active: bool = True


class ServiceSummary(SQLModel):
    id: int
    name: str
