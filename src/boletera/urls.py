"""Root URL configuration for all boletera APIs.

Include it from a project's ``urls.py``::

    path("", include("boletera.urls")),
"""

from django.urls import include, path

urlpatterns = [
    path("api/public/events/", include("boletera.events.urls")),
    path("api/auth/", include("boletera.accounts.urls")),
    path("api/admin/", include("boletera.support.urls")),
    path("api/", include("boletera.checkout.urls")),
    path("api/", include("boletera.tickets.urls")),
]
