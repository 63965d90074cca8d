from sqlmodel import Field, SQLModel


class UserBase(SQLModel):
    email: str = Field(unique=True, index=True)
    name: str | None = None
    phone: str | None = None
    role: str = Field(default="client", max_length=20)  # "client" | "admin"


class User(UserBase, table=True):
    __tablename__ = "users"
    id: int | None = Field(default=None, primary_key=True)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class UserSummary(SQLModel):
    id: int
    name: str | None = None
    email: str | None = None
    phone: str | None = None
