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

import argparse
import sys

from prometheus_client import CollectorRegistry
from prometheus_client import PlatformCollector
from prometheus_client import ProcessCollector

from twisted.internet import reactor
from twisted.internet import task
from twisted.internet.endpoints import serverFromString
from twisted.logger import FilteringLogObserver
from twisted.logger import LogLevel
from twisted.logger import LogLevelFilterPredicate
from twisted.logger import Logger
from twisted.logger import globalLogBeginner
from twisted.logger import jsonFileLogObserver
from twisted.logger import textFileLogObserver

from ds389_exporter import __version__
from ds389_exporter.config import ConfigError
from ds389_exporter.config import loadConfig
from ds389_exporter.metrics import ExporterMetrics
from ds389_exporter.scraper import Scraper
from ds389_exporter.web import buildSite

log = Logger(namespace = 'ds389_exporter')

def parseArguments(argv = None):
   parser = argparse.ArgumentParser(prog = 'ds389_exporter',
                                    description = 'Prometheus 389ds/FreeIPA exporter')
   parser.add_argument('--config',
                       type = argparse.FileType('r'),
                       help = 'configuration file',
                       required = True)
   parser.add_argument('--debug',
                       action = 'store_true',
                       help = 'debug logging')
   parser.add_argument('--log-json',
                       action = 'store_true',
                       help = 'JSON formatted log messages')
   parser.add_argument('--version',
                       action = 'version',
                       version = '%(prog)s {}'.format(__version__))
   return parser.parse_args(argv)

def logObserver(config, stream = sys.stderr):
   if config['log_json']:
      output = jsonFileLogObserver(stream)
   else:
      output = textFileLogObserver(stream, timeFormat = '')
   level = LogLevel.debug if config['debug'] else LogLevel.info
   predicate = LogLevelFilterPredicate(defaultLogLevel = level)
   return FilteringLogObserver(output, [predicate])

def buildRegistry():
   registry = CollectorRegistry()
   ProcessCollector(registry = registry)
   PlatformCollector(registry = registry)
   return registry

def listenFailed(failure):
   log.critical('Failed to start metrics server, error is: {error}', error = failure.getErrorMessage())
   reactor.stop()

def loopFailed(failure):
   log.failure('Scrape loop stopped', failure)

def main(argv = None):
   arguments = parseArguments(argv)

   try:
      config = loadConfig(arguments.config)
   except ConfigError as e:
      sys.stderr.write('ds389_exporter: {}\n'.format(e))
      sys.exit(1)
   finally:
      arguments.config.close()

   config['debug'] = config['debug'] or arguments.debug
   config['log_json'] = config['log_json'] or arguments.log_json

   globalLogBeginner.beginLoggingTo([logObserver(config)])

   registry = buildRegistry()
   metrics = ExporterMetrics(registry)
   scraper = Scraper(reactor,
                     metrics,
                     config['client'],
                     config['binddn'],
                     config['bindpw'],
                     config['domain'],
                     timeout = config['timeout'])

   log.info('Starting prometheus HTTP metrics server on {server}', server = config['server'])
   site = buildSite(registry, config['metrics_path'], __version__)
   endpoint = serverFromString(reactor, config['server'])
   d = endpoint.listen(site)
   d.addErrback(listenFailed)

   log.info('Starting 389ds scraper for {client}', client = config['client'])
   loop = task.LoopingCall(scraper.scrape)
   loop.clock = reactor
   d = loop.start(config['interval'], now = True)
   d.addErrback(loopFailed)

   reactor.run()
