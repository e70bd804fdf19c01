"""Sample industry catalogs bundled with the package."""
