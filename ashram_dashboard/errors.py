"""Exceptions raised by the dashboard services and mapped to HTTP responses by the routes."""


class DashboardError(Exception):
    """Base class for dashboard errors"""

    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'success': False, 'error': self.message}


class MatrixValidationError(DashboardError):
    """Uploaded sheet has the wrong shape; nothing was written"""

    status_code = 400


class MatrixApplyError(DashboardError):
    """An upsert failed part-way through an apply"""

    def __init__(self, message, applied=0, created_entities=0, backups=None):
        super().__init__(message)
        self.applied = applied
        self.created_entities = created_entities
        self.backups = backups or []

    def to_dict(self):
        return {
            'success': False,
            'error': self.message,
            'applied': self.applied,
            'createdEntities': self.created_entities,
            'backups': self.backups,
        }


class NotFoundError(DashboardError):
    status_code = 404


class InvalidRequestError(DashboardError):
    status_code = 400


class MailError(DashboardError):
    pass


class BackupError(DashboardError):
    pass


class DriveError(DashboardError):
    pass


class ConflictError(DashboardError):
    status_code = 409
