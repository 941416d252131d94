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

import yaml

DEFAULTS = {
   'server': 'tcp:9496',
   'metrics_path': '/metrics',
   'client': 'tcp:host=localhost:port=389',
   'binddn': 'cn=Directory Manager',
   'bindpw': '',
   'domain': '',
   'interval': 60,
   'timeout': None,
   'debug': False,
   'log_json': False,
}

class ConfigError(Exception):
   pass

def loadConfig(stream):
   """Read the YAML configuration from an open file and apply defaults.

   Raises ConfigError when the document can't be used to start the
   exporter. The returned dict holds every key in DEFAULTS.
   """
   try:
      document = yaml.safe_load(stream)
   except yaml.YAMLError as e:
      raise ConfigError('unable to parse configuration: {}'.format(e))

   if document is None:
      document = {}
   if not isinstance(document, dict):
      raise ConfigError('configuration must be a mapping')

   config = dict(DEFAULTS)
   config.update(document)
   validateConfig(config)
   return config

def validateConfig(config):
   if not config['bindpw']:
      raise ConfigError('bindpw cannot be empty')
   config['domain'] = str(config['domain'] or '').strip('.')
   if not config['domain']:
      raise ConfigError('domain cannot be empty')

   try:
      config['interval'] = float(config['interval'])
   except (TypeError, ValueError):
      raise ConfigError('interval must be a number of seconds')
   if config['interval'] <= 0:
      raise ConfigError('interval must be positive')

   if config['timeout'] is not None:
      try:
         config['timeout'] = float(config['timeout'])
      except (TypeError, ValueError):
         raise ConfigError('timeout must be a number of seconds')
      if config['timeout'] <= 0:
         config['timeout'] = None

   path = str(config['metrics_path'])
   if not path.startswith('/'):
      path = '/' + path
   if path == '/':
      raise ConfigError('metrics_path cannot be the root path')
   config['metrics_path'] = path
