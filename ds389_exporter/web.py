# -*- mode: python; coding: utf-8 -*-

# Copyright © 2017 by Jeffrey C. Ollie <jeff@ocjtech.us>

# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

# This program is distributed in the hope that it will be useful, but
# WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU
# General Public License for more details.

# You should have received a copy of the GNU General Public License
# along with this program.  If not, see
# <http://www.gnu.org/licenses/>.

from html import escape

from prometheus_client import CONTENT_TYPE_LATEST
from prometheus_client import generate_latest

from twisted.web.resource import Resource
from twisted.web.server import Site

LANDING_PAGE = '''<html>
<head><title>389ds Exporter</title></head>
<body>
<h1>389ds Exporter</h1>
<p><a href="{path}">Metrics</a></p>
<h2>Build</h2>
<pre>{version}</pre>
</body>
</html>
'''

class QuietSite(Site):
   noisy = False

class MetricsPage(Resource):
   isLeaf = True

   def __init__(self, registry):
      self.registry = registry
      Resource.__init__(self)

   def render_GET(self, request):
      request.setHeader(b'Content-Type', CONTENT_TYPE_LATEST.encode('ascii'))
      return generate_latest(self.registry)

class RootPage(Resource):
   isLeaf = False

   def __init__(self, metricsPath, version):
      self.metricsPath = metricsPath
      self.version = version
      Resource.__init__(self)

   def getChild(self, name, request):
      if name == b'':
         return self
      return Resource.getChild(self, name, request)

   def render_GET(self, request):
      request.setHeader(b'Content-Type', b'text/html; charset=utf-8')
      page = LANDING_PAGE.format(path = escape(self.metricsPath, quote = True),
                                 version = escape(self.version))
      return page.encode('utf-8')

def buildSite(registry, metricsPath, version):
   root = RootPage(metricsPath, version)
   segments = [s.encode('utf-8') for s in metricsPath.strip('/').split('/')]
   parent = root
   for segment in segments[:-1]:
      child = Resource()
      parent.putChild(segment, child)
      parent = child
   parent.putChild(segments[-1], MetricsPage(registry))
   return QuietSite(root)
