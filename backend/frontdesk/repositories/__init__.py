# Repositories
from frontdesk.repositories.base import Repository
from frontdesk.repositories.unit_of_work import UnitOfWork

__all__ = ['Repository', 'UnitOfWork']
