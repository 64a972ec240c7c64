import os
import logging
from functools import lru_cache
from typing import Optional

from fastapi import FastAPI, Depends, HTTPException, Request, status, Form
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer
from pymongo.errors import PyMongoError

from auth import AuthGateway, CredentialProvider
from database import connect
from errors import AuthError, NotFoundError, PermissionDeniedError, ValidationError
from hooks import (
    QueryState,
    use_available_technicians,
    use_customers,
    use_products,
    use_products_by_category,
    use_repairs,
    use_repairs_by_customer_id,
    use_repairs_by_status,
    use_technicians,
)
from policy import authorize, guard_for
from repositories import Repositories, Repository
from schemas import (
    Customer,
    CustomerUpdate,
    Principal,
    Product,
    ProductUpdate,
    Repair,
    RepairUpdate,
    Technician,
    TechnicianUpdate,
    Token,
    UserCreate,
    UserUpdate,
)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Repair Shop Backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


# ---------- Error mapping ----------

@app.exception_handler(ValidationError)
def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": "Validation failed", "errors": exc.errors})


@app.exception_handler(NotFoundError)
def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(PermissionDeniedError)
def permission_denied_handler(request: Request, exc: PermissionDeniedError):
    return JSONResponse(status_code=403, content={"detail": str(exc)})


# ---------- Dependencies ----------

@lru_cache(maxsize=1)
def get_database():
    return connect()


def get_db(database=Depends(get_database)):
    if database is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return database


def get_current_principal(token: str = Depends(oauth2_scheme), database=Depends(get_db)) -> Principal:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    provider = CredentialProvider(database)
    try:
        provider.restore_session(token)
    except AuthError:
        raise credentials_exception
    principal = AuthGateway(provider).get_current_user()
    if principal is None:
        raise credentials_exception
    return principal


def get_repositories(principal: Principal = Depends(get_current_principal), database=Depends(get_db)) -> Repositories:
    return Repositories(database, guard=guard_for(principal))


def _created(repo: Repository, payload) -> dict:
    new_id = repo.add(payload)
    if not new_id:
        raise HTTPException(status_code=503, detail=f"Could not create {repo.label}")
    return {"id": new_id}


def _found(repo: Repository, doc_id: str) -> dict:
    doc = repo.get(doc_id)
    if doc is None:
        raise HTTPException(status_code=404, detail=f"{repo.label.capitalize()} not found")
    return doc


def _success(ok: bool, repo: Repository, action: str) -> dict:
    if not ok:
        raise HTTPException(status_code=503, detail=f"Could not {action} {repo.label}")
    return {"success": True}


# ---------- Service ----------

@app.get("/")
def read_root():
    return {"message": "Repair Shop Backend Running"}


@app.get("/test")
def test_database(_db=Depends(get_database)):
    """Report whether the configured database answers."""
    if _db is None:
        return {"backend": "running", "database": "not configured", "database_name": None, "collections": []}
    try:
        collections = _db.list_collection_names()
    except PyMongoError as exc:
        logger.error("Database check failed: %s", exc)
        return {"backend": "running", "database": "unreachable", "database_name": _db.name, "collections": []}
    return {"backend": "running", "database": "connected", "database_name": _db.name, "collections": sorted(collections)}


# ---------- Auth ----------

@app.post("/auth/register", response_model=Principal)
def register(user: UserCreate, database=Depends(get_db)):
    principal = AuthGateway(CredentialProvider(database)).register(user.email, user.password)
    if principal is None:
        raise HTTPException(status_code=400, detail="Could not register user")
    return principal


@app.post("/auth/login", response_model=Token)
def login(username: str = Form(...), password: str = Form(...), database=Depends(get_db)):
    gateway = AuthGateway(CredentialProvider(database))
    if gateway.login(username, password) is None:
        raise HTTPException(status_code=400, detail="Incorrect email or password")
    return Token(access_token=gateway.token)


@app.post("/auth/logout")
def logout(token: str = Depends(oauth2_scheme), database=Depends(get_db)):
    provider = CredentialProvider(database)
    try:
        provider.restore_session(token)
    except AuthError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not AuthGateway(provider).logout():
        raise HTTPException(status_code=503, detail="Could not end session")
    return {"success": True}


@app.get("/auth/me", response_model=Principal)
def me(current_user: Principal = Depends(get_current_principal)):
    return current_user


# ---------- Users ----------

@app.get("/users/{user_id}")
def get_user(user_id: str, principal: Principal = Depends(get_current_principal), database=Depends(get_db)):
    authorize("users", "read", principal, {"id": user_id})
    user = CredentialProvider(database).get_user(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@app.patch("/users/{user_id}", response_model=Principal)
def update_user(user_id: str, body: UserUpdate, principal: Principal = Depends(get_current_principal),
                database=Depends(get_db)):
    provider = CredentialProvider(database)
    existing = provider.get_user(user_id)
    if existing is None:
        raise HTTPException(status_code=404, detail="User not found")
    changes = body.model_dump(exclude_unset=True)
    authorize("users", "update", principal, {**existing, **changes}, existing)
    updated = provider.update_user(user_id, changes)
    if updated is None:
        raise HTTPException(status_code=503, detail="Could not update user")
    return updated


# ---------- Customers ----------

@app.post("/customers")
def create_customer(customer: Customer, repos: Repositories = Depends(get_repositories)):
    return _created(repos.customers, customer)


@app.get("/customers", response_model=QueryState)
def list_customers(repos: Repositories = Depends(get_repositories)):
    return use_customers(repos).state


@app.get("/customers/{customer_id}")
def get_customer(customer_id: str, repos: Repositories = Depends(get_repositories)):
    return _found(repos.customers, customer_id)


@app.get("/customers/{customer_id}/repairs", response_model=QueryState)
def list_customer_repairs(customer_id: str, repos: Repositories = Depends(get_repositories)):
    return use_repairs_by_customer_id(repos, customer_id).state


@app.patch("/customers/{customer_id}")
def update_customer(customer_id: str, changes: CustomerUpdate, repos: Repositories = Depends(get_repositories)):
    return _success(repos.customers.update(customer_id, changes), repos.customers, "update")


@app.delete("/customers/{customer_id}")
def delete_customer(customer_id: str, repos: Repositories = Depends(get_repositories)):
    return _success(repos.customers.delete(customer_id), repos.customers, "delete")


# ---------- Repairs ----------

@app.post("/repairs")
def create_repair(repair: Repair, repos: Repositories = Depends(get_repositories)):
    return _created(repos.repairs, repair)


@app.get("/repairs", response_model=QueryState)
def list_repairs(status: Optional[str] = None, repos: Repositories = Depends(get_repositories)):
    if status is None:
        return use_repairs(repos).state
    return use_repairs_by_status(repos, status).state


@app.get("/repairs/{repair_id}")
def get_repair(repair_id: str, repos: Repositories = Depends(get_repositories)):
    return _found(repos.repairs, repair_id)


@app.patch("/repairs/{repair_id}")
def update_repair(repair_id: str, changes: RepairUpdate, repos: Repositories = Depends(get_repositories)):
    return _success(repos.repairs.update(repair_id, changes), repos.repairs, "update")


@app.delete("/repairs/{repair_id}")
def delete_repair(repair_id: str, repos: Repositories = Depends(get_repositories)):
    return _success(repos.repairs.delete(repair_id), repos.repairs, "delete")


# ---------- Products ----------

@app.post("/products")
def create_product(product: Product, repos: Repositories = Depends(get_repositories)):
    return _created(repos.products, product)


@app.get("/products", response_model=QueryState)
def list_products(category: Optional[str] = None, repos: Repositories = Depends(get_repositories)):
    if category is None:
        return use_products(repos).state
    return use_products_by_category(repos, category).state


@app.get("/products/{product_id}")
def get_product(product_id: str, repos: Repositories = Depends(get_repositories)):
    return _found(repos.products, product_id)


@app.patch("/products/{product_id}")
def update_product(product_id: str, changes: ProductUpdate, repos: Repositories = Depends(get_repositories)):
    return _success(repos.products.update(product_id, changes), repos.products, "update")


@app.delete("/products/{product_id}")
def delete_product(product_id: str, repos: Repositories = Depends(get_repositories)):
    return _success(repos.products.delete(product_id), repos.products, "delete")


# ---------- Technicians ----------

@app.post("/technicians")
def create_technician(technician: Technician, repos: Repositories = Depends(get_repositories)):
    return _created(repos.technicians, technician)


@app.get("/technicians", response_model=QueryState)
def list_technicians(available: bool = False, repos: Repositories = Depends(get_repositories)):
    if available:
        return use_available_technicians(repos).state
    return use_technicians(repos).state


@app.get("/technicians/{technician_id}")
def get_technician(technician_id: str, repos: Repositories = Depends(get_repositories)):
    return _found(repos.technicians, technician_id)


@app.patch("/technicians/{technician_id}")
def update_technician(technician_id: str, changes: TechnicianUpdate, repos: Repositories = Depends(get_repositories)):
    return _success(repos.technicians.update(technician_id, changes), repos.technicians, "update")


@app.delete("/technicians/{technician_id}")
def delete_technician(technician_id: str, repos: Repositories = Depends(get_repositories)):
    return _success(repos.technicians.delete(technician_id), repos.technicians, "delete")


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
