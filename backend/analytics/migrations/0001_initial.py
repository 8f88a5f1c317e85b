from decimal import Decimal
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='DailyAnalytics',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('date', models.DateField(unique=True)),
                ('total_rides', models.IntegerField(default=0)),
                ('total_revenue', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('active_drivers', models.IntegerField(default=0)),
                ('avg_wait_time', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=6)),
                ('avg_rating', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=3)),
                ('rated_rides', models.IntegerField(default=0)),
                ('peak_hours', models.JSONField(blank=True, default=dict)),
                ('pool_rides', models.IntegerField(default=0)),
                ('pool_ride_percentage', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=5)),
            ],
            options={
                'verbose_name_plural': 'daily analytics',
                'db_table': 'daily_analytics',
                'ordering': ['-date'],
            },
        ),
    ]
