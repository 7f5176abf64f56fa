import logging
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from hrms.config import settings
from hrms.repositories.request import RequestRepository
from hrms.repositories.workflow import WorkflowRepository
from hrms.repositories.user import UserRepository, DepartmentRepository
from hrms.repositories.attendance import AttendanceRepository
from hrms.repositories.notification import NotificationRepository
from hrms.repositories.config import ConfigRepository
from hrms.repositories.audit import AuditLogger
from hrms.models.request import Request
from hrms.models.workflow import Workflow
from hrms.models.user import Employee, Department
from hrms.models.attendance import Attendance
from hrms.models.notification import Notification
from hrms.models.config import SystemConfig
from hrms.models.audit import AuditEvent

logger = logging.getLogger(__name__)

class Database:
    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

    # Repositories
    requests: RequestRepository = None
    workflows: WorkflowRepository = None
    users: UserRepository = None
    departments: DepartmentRepository = None
    attendance: AttendanceRepository = None
    notifications: NotificationRepository = None
    config: ConfigRepository = None
    audit: AuditLogger = None

    def connect(self):
        """Initialize database connection and repositories."""
        self.client = AsyncIOMotorClient(settings.MONGODB_URL)
        self.bind(self.client[settings.DB_NAME])
        logger.info(f"Connected to MongoDB database '{settings.DB_NAME}'")

    def bind(self, database: AsyncIOMotorDatabase):
        """Attach repositories to a database handle."""
        self.db = database
        self.requests = RequestRepository(database.requests, Request)
        self.workflows = WorkflowRepository(database.workflows, Workflow)
        self.users = UserRepository(database.users, Employee)
        self.departments = DepartmentRepository(database.departments, Department)
        self.attendance = AttendanceRepository(database.attendance, Attendance)
        self.notifications = NotificationRepository(database.notifications, Notification)
        self.config = ConfigRepository(database.system_config, SystemConfig)
        self.audit = AuditLogger(database.audit_log, AuditEvent)

    def close(self):
        """Close database connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

db = Database()

async def get_db() -> Database:
    """Dependency for FastAPI."""
    return db
