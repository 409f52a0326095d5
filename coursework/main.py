from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from coursework.api import (
    routes_dashboard,
    routes_enrollment,
    routes_instance,
    routes_notification,
    routes_submission,
    routes_template,
)
from coursework.core.config import settings
from coursework.core.errors import register_exception_handlers
from coursework.core.logger import setup_logging
from coursework.db import database
# Every table has to be registered on Base before create_all
from coursework.models import (  # noqa: F401
    assignment_template,
    course,
    enrollment,
    notification,
    published_assignment,
    submission,
    user,
)

logger = setup_logging()

# Create tables
database.Base.metadata.create_all(bind=database.engine)

app = FastAPI(title=settings.PROJECT_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

@app.get("/")
def read_root():
    return {"message": f"Welcome to the {settings.PROJECT_NAME} API"}

# Register routers
app.include_router(routes_instance.router, prefix="/instances", tags=["Assignments"])
app.include_router(routes_template.router, prefix="/templates", tags=["Templates"])
app.include_router(routes_submission.router, prefix="/submissions", tags=["Submissions"])
app.include_router(routes_enrollment.router, prefix="/enrollments", tags=["Enrollments"])
app.include_router(routes_dashboard.router, prefix="/dashboard", tags=["Dashboard"])
app.include_router(routes_notification.router, prefix="/notify", tags=["Notification"])

logger.info("%s started", settings.PROJECT_NAME)
