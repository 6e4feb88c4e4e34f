"""
SitJournal URL Configuration
"""
from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse


def api_root(request):
    """Root endpoint with API information."""
    return JsonResponse({
        'message': 'SitJournal API Server',
        'version': '1.0',
        'endpoints': {
            'feed': '/api/feed/',
            'explore': '/api/explore/',
            'sits': '/api/sits/<id>/',
            'users': '/api/users/<username>/',
            'suggestions': '/api/suggestions/',
            'notifications': '/api/notifications/',
            'account': '/api/account/',
        },
        'admin': '/admin/',
    })


urlpatterns = [
    path('', api_root, name='api-root'),
    path('admin/', admin.site.urls),
    path('api/', include('journal.urls')),
]
