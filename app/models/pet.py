from sqlmodel import Field, SQLModel


class Pet(SQLModel, table=True):
    __tablename__ = "pets"
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    name: str
    species: str = "cachorro"
    breed: str | None = None
    size: str | None = None
    notes: str | None = None


class PetSummary(SQLModel):
    id: int
    name: str
    species: str | None = None
