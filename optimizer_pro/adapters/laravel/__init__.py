from .project import ArtisanError, ArtisanRouteRegistry, LaravelEnvironment, parse_route_list

__all__ = ["ArtisanError", "ArtisanRouteRegistry", "LaravelEnvironment", "parse_route_list"]
