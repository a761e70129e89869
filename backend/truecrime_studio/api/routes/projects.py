from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from truecrime_studio.api.deps import StorageContext, get_repository, get_storage_context
from truecrime_studio.schemas.project import Project
from truecrime_studio.services.project_repository import ProjectRepository

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("", response_model=List[Project])
def list_projects(repository: ProjectRepository = Depends(get_repository)):
    return repository.get_all()


@router.get("/{project_id}", response_model=Project)
def get_project(project_id: str, repository: ProjectRepository = Depends(get_repository)):
    project = repository.get(project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.put("", response_model=Project)
def save_project(payload: Project, repository: ProjectRepository = Depends(get_repository)):
    saved = repository.save(payload)
    if saved is None:
        raise HTTPException(
            status_code=status.HTTP_507_INSUFFICIENT_STORAGE,
            detail="Project could not be saved; storage may be full",
        )
    return saved


@router.delete("/{project_id}")
def delete_project(project_id: str, ctx: StorageContext = Depends(get_storage_context)):
    project = ctx.repository.get(project_id)
    if project is None or not ctx.repository.delete(project_id):
        raise HTTPException(status_code=404, detail="Project not found")
    ctx.offloader.release_later(project)
    return {"deleted": True, "id": project_id}
