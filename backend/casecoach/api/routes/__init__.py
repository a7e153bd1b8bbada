"""Route Modules — one file per resource; each defines its own APIRouter with prefix and tags."""
