from typing import Optional
from datetime import datetime
from pydantic import BaseModel

from piecesync.models.client import Client
from piecesync.models.project import Project


class ClientDTO(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    @classmethod
    def from_orm_model(cls, client: Client) -> "ClientDTO":
        return cls(id=client.id, name=client.name, email=client.email, phone=client.phone)


class ProjectDTO(BaseModel):
    id: str
    project_code: str
    name: str
    client_id: Optional[str]
    client_name: str
    engineer: Optional[str]
    status: Optional[str]
    total_volume: float
    created_at: Optional[datetime] = None

    @classmethod
    def from_orm_model(cls, project: Project) -> "ProjectDTO":
        return cls(
            id=project.id,
            project_code=project.project_code,
            name=project.name,
            client_id=project.client_id,
            client_name=project.client_name,
            engineer=project.engineer,
            status=project.status,
            total_volume=project.total_volume or 0.0,
            created_at=project.created_at,
        )
