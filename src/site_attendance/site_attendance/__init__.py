"""Site Attendance package.

Geofenced check-in/check-out with a selfie, organized by feature modules
(geofence, geolocation, capture, offline, attendance, settings, users) with
a thin Flask controller layer over service/repository layers.
"""
