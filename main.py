# FastAPI Application Redirect
# This file redirects to the actual app in the orgtask package

from orgtask.main import app
