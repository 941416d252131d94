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

from prometheus_client import CONTENT_TYPE_LATEST
from prometheus_client import CollectorRegistry

from twisted.internet import defer
from twisted.internet import task
from twisted.trial.unittest import SynchronousTestCase
from twisted.web.resource import getChildForRequest
from twisted.web.test.requesthelper import DummyRequest

from ds389_exporter.metrics import ExporterMetrics
from ds389_exporter.scraper import Scraper
from ds389_exporter.web import MetricsPage
from ds389_exporter.web import RootPage
from ds389_exporter.web import buildSite

from tests.fakes import SUFFIX
from tests.fakes import FakeConnection
from tests.fakes import FakeConnector
from tests.fakes import directoryResults

def render(site, path):
   request = DummyRequest(path.lstrip('/').split('/'))
   request.postpath = [segment.encode('utf-8') for segment in request.postpath]
   resource = getChildForRequest(site.resource, request)
   body = resource.render(request)
   return resource, request, body

class SiteTests(SynchronousTestCase):
   def setUp(self):
      self.registry = CollectorRegistry()
      self.metrics = ExporterMetrics(self.registry)

   def test_root_page_links_metrics(self):
      site = buildSite(self.registry, '/metrics', '1.0.0')
      resource, request, body = render(site, '/')
      self.assertIsInstance(resource, RootPage)
      self.assertIn(b"href=\"/metrics\"", body)
      self.assertIn(b'1.0.0', body)
      self.assertEqual(request.responseHeaders.getRawHeaders(b'content-type'),
                       [b'text/html; charset=utf-8'])

   def test_metrics_page(self):
      self.metrics.setGroups(42)
      site = buildSite(self.registry, '/metrics', '1.0.0')
      resource, request, body = render(site, '/metrics')
      self.assertIsInstance(resource, MetricsPage)
      self.assertIn(b'ldap_389ds_groups 42.0', body)
      self.assertEqual(request.responseHeaders.getRawHeaders(b'content-type'),
                       [CONTENT_TYPE_LATEST.encode('ascii')])

   def test_counts_before_first_scrape(self):
      site = buildSite(self.registry, '/metrics', '1.0.0')
      resource, request, body = render(site, '/metrics')
      self.assertIn(b'ldap_389ds_hosts NaN', body)
      self.assertNotIn(b'ldap_389ds_hosts 0.0', body)

   def test_nested_metrics_path(self):
      site = buildSite(self.registry, '/exporter/metrics', '1.0.0')
      resource, request, body = render(site, '/exporter/metrics')
      self.assertIsInstance(resource, MetricsPage)
      self.assertIn(b'ldap_389ds_scrape_duration_seconds', body)

   def test_quiet(self):
      self.assertFalse(buildSite(self.registry, '/metrics', '1.0.0').noisy)

class ReadDuringScrapeTests(SynchronousTestCase):
   def test_previous_values_served(self):
      registry = CollectorRegistry()
      metrics = ExporterMetrics(registry)
      metrics.setHosts(14)
      results = directoryResults()
      pending = defer.Deferred()
      results['cn=computers,cn=accounts,' + SUFFIX] = pending
      scraper = Scraper(task.Clock(), metrics, 'tcp:host=localhost:port=389',
                        'cn=Directory Manager', 'secret', 'example.org',
                        connector = FakeConnector(FakeConnection(results)))
      site = buildSite(registry, '/metrics', '1.0.0')

      d = scraper.scrape()
      self.assertNoResult(d)
      resource, request, body = render(site, '/metrics')
      self.assertIn(b'ldap_389ds_hosts 14.0', body)
      self.assertIn(b'ldap_389ds_groups 42.0', body)

      pending.callback([{'numSubordinates': [b'15']}])
      self.assertTrue(self.successResultOf(d))
      resource, request, body = render(site, '/metrics')
      self.assertIn(b'ldap_389ds_hosts 15.0', body)
