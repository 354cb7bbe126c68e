from treehub.routers.agents import router as agents_router
from treehub.routers.weather import router as weather_router
from treehub.routers.tiers import router as tiers_router
from treehub.routers.territories import router as territories_router
from treehub.routers.partnerships import router as partnerships_router
from treehub.routers.revenue import router as revenue_router
from treehub.routers.subscriptions import router as subscriptions_router
